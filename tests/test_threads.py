import os
import sys
import threading
import unittest
from unittest.mock import MagicMock

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from git_spice_manager import RepoSyncResult
from threads import RepoSyncThread


class TestRepoSyncThread(unittest.TestCase):
    def make_thread(self):
        manager = MagicMock()
        asked = []

        def repo_sync(ask):
            deleted = [name for name in ("old", "older") if ask(name)]
            asked.extend(["old", "older"])
            return RepoSyncResult(deleted_branches=deleted)

        manager.repo_sync.side_effect = repo_sync
        return RepoSyncThread(manager), asked

    def test_prompt_waits_for_answer(self):
        thread, _ = self.make_thread()
        thread.prompt.connect(lambda name: thread.answer(name == "old"))
        results = []
        thread.synced.connect(results.append)

        thread.run()

        self.assertEqual(results[0].deleted_branches, ["old"])

    def test_cancel_answers_pending_prompt(self):
        thread, _ = self.make_thread()
        answers = []
        worker = threading.Thread(target=lambda: answers.append(thread._ask("old")))
        worker.start()

        thread.cancel()
        worker.join(timeout=5)

        self.assertFalse(worker.is_alive())
        self.assertEqual(answers, [False])

    def test_cancelled_sync_declines_every_prompt(self):
        thread, asked = self.make_thread()
        prompted = []
        thread.prompt.connect(prompted.append)
        results = []
        thread.synced.connect(results.append)

        thread.cancel()
        thread.run()

        self.assertEqual(prompted, [])
        self.assertEqual(asked, ["old", "older"])
        self.assertEqual(results[0].deleted_branches, [])


if __name__ == "__main__":
    unittest.main()

import json
import logging
import os
from pathlib import Path
from typing import Optional


DEFAULT_SETTINGS = {
    "recent_folders": [],  # 最近打开的文件夹列表
    "last_folder": None,  # 上次打开的文件夹
    "max_recent": 10,  # 最大记录数
    "git_spice_binary": "gs",  # git-spice 可执行文件
    "show_comment_progress": False,  # 是否显示 PR 评论进度 (gs ll -c)
    "command_timeout": 30,  # gs 命令超时（秒）
    "refresh_debounce_ms": 300,  # 文件变化后刷新的防抖间隔
    "font_family": "Courier New",  # 默认字体
    "font_size": 12,  # 默认字体大小
    "window_geometry": None,  # 窗口位置和大小
}


class Settings:
    def __init__(self, config_dir: Optional[str] = None):
        # 默认放在用户主目录
        self.config_dir = config_dir or os.path.join(str(Path.home()), ".mystack")
        if not os.path.exists(self.config_dir):
            os.makedirs(self.config_dir)

        # 配置文件路径
        self.config_file = os.path.join(self.config_dir, "settings.json")

        self.settings = json.loads(json.dumps(DEFAULT_SETTINGS))

        # 加载已有设置
        self.load_settings()

    def load_settings(self):
        """加载设置"""
        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, "r", encoding="utf-8") as f:
                    saved_settings = json.load(f)
                if isinstance(saved_settings, dict):
                    self.settings.update(saved_settings)
                else:
                    logging.warning("Ignoring malformed settings file %s", self.config_file)
        except (OSError, ValueError) as e:
            logging.error("加载设置失败：%s", e)

    def save_settings(self):
        """保存设置"""
        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(self.settings, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logging.error("保存设置失败：%s", e)

    def add_recent_folder(self, folder_path):
        """添加最近打开的文件夹"""
        self.settings["last_folder"] = folder_path

        recent = self.settings["recent_folders"]
        if folder_path in recent:
            recent.remove(folder_path)
        recent.insert(0, folder_path)

        # 保持列表在最大长度以内
        self.settings["recent_folders"] = recent[: self.settings["max_recent"]]
        self.save_settings()

    def remove_recent_folder(self, folder_path):
        recent = self.settings["recent_folders"]
        if folder_path in recent:
            recent.remove(folder_path)
            if self.settings["last_folder"] == folder_path:
                self.settings["last_folder"] = None
            self.save_settings()

    def get_recent_folders(self):
        """获取最近文件夹列表"""
        return self.settings["recent_folders"]

    def get_last_folder(self):
        """获取上次打开的文件夹"""
        return self.settings["last_folder"]

    def get_git_spice_binary(self):
        return self.settings.get("git_spice_binary") or "gs"

    def set_git_spice_binary(self, binary):
        self.settings["git_spice_binary"] = binary
        self.save_settings()

    def get_show_comment_progress(self):
        return bool(self.settings.get("show_comment_progress", False))

    def set_show_comment_progress(self, enabled):
        self.settings["show_comment_progress"] = bool(enabled)
        self.save_settings()

    def get_command_timeout(self):
        return self.settings.get("command_timeout", 30)

    def get_refresh_debounce_ms(self):
        return self.settings.get("refresh_debounce_ms", 300)

    def get_font_family(self):
        """获取字体设置"""
        return self.settings.get("font_family", "Courier New")

    def set_font_family(self, font_family):
        """设置字体"""
        self.settings["font_family"] = font_family
        self.save_settings()

    def get_font_size(self):
        """获取字体大小设置"""
        return self.settings.get("font_size", 12)

    def set_font_size(self, font_size):
        """设置字体大小"""
        self.settings["font_size"] = font_size
        self.save_settings()

    def save_window_geometry(self, geometry):
        """保存窗口位置，geometry 为 base64 字符串"""
        self.settings["window_geometry"] = geometry
        self.save_settings()

    def get_window_geometry(self):
        return self.settings.get("window_geometry")


# 创建全局settings实例
settings = Settings()

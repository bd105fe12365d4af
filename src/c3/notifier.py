"""
Desktop notifications and sounds for attention triggers.

A sink for the SideEffectDispatcher. macOS uses terminal-notifier when
available, falling back to osascript/afplay; Linux uses notify-send and
paplay. Everything is fire-and-forget: a missing binary or a failed spawn
never reaches the engine.
"""

import shutil
import subprocess
import sys
from typing import Dict, Optional

from .dispatcher import AttentionTrigger


MACOS_SOUND_DIR = "/System/Library/Sounds"
LINUX_SOUND_DIR = "/usr/share/sounds/freedesktop/stereo"


class Notifier:
    """Delivers AttentionTriggers as banners and/or sounds."""

    MODES = ("off", "sound", "banner", "both")

    def __init__(
        self,
        mode: str = "both",
        sounds: Optional[Dict[str, str]] = None,
        platform: Optional[str] = None,
    ):
        self.mode = mode if mode in self.MODES else "off"
        self.sounds = dict(sounds or {})
        self.platform = platform or sys.platform
        self._has_terminal_notifier: bool | None = None  # lazy-detected

    def __call__(self, trigger: AttentionTrigger) -> None:
        self.notify(trigger)

    def notify(self, trigger: AttentionTrigger) -> None:
        if self.mode == "off":
            return
        want_sound = self.mode in ("sound", "both")
        want_banner = self.mode in ("banner", "both")
        sound = self.sounds.get(trigger.kind) if want_sound else None

        if self.platform == "darwin":
            self._send_macos(trigger, sound, want_banner)
        elif self.platform.startswith("linux"):
            self._send_linux(trigger, sound, want_banner)

    # ------------------------------------------------------------------
    # Sound resolution
    # ------------------------------------------------------------------

    def sound_path(self, name: str) -> str:
        """Absolute path for a sound name. Absolute names pass through."""
        if name.startswith("/"):
            return name
        if self.platform == "darwin":
            return f"{MACOS_SOUND_DIR}/{name}.aiff"
        return f"{LINUX_SOUND_DIR}/{name}.oga"

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _spawn(self, cmd: list) -> None:
        try:
            subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError:
            pass

    def _use_terminal_notifier(self) -> bool:
        if self._has_terminal_notifier is None:
            self._has_terminal_notifier = shutil.which("terminal-notifier") is not None
        return self._has_terminal_notifier

    def _send_macos(self, trigger: AttentionTrigger, sound: Optional[str], want_banner: bool) -> None:
        if want_banner and self._use_terminal_notifier():
            cmd = [
                "terminal-notifier", "-title", trigger.title,
                "-message", trigger.body, "-group", f"c3-{trigger.session_id}",
            ]
            if sound and not sound.startswith("/"):
                cmd += ["-sound", sound]
                sound = None
            self._spawn(cmd)
        elif want_banner:
            title = trigger.title.replace('"', "'")
            body = trigger.body.replace('"', "'")
            self._spawn(["osascript", "-e", f'display notification "{body}" with title "{title}"'])

        if sound:
            self._spawn(["afplay", self.sound_path(sound)])

    def _send_linux(self, trigger: AttentionTrigger, sound: Optional[str], want_banner: bool) -> None:
        if want_banner and shutil.which("notify-send"):
            self._spawn(["notify-send", "--app-name=c3", trigger.title, trigger.body])
        if sound and shutil.which("paplay"):
            self._spawn(["paplay", self.sound_path(sound)])

"""Minimal SDP inspection for RTSP DESCRIBE results.

Only media sections and their ``a=control:`` identifiers are looked at.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

CONTROL = "a=control:"

MEDIA_KINDS = ("video", "audio")

@dataclass(frozen=True)
class SessionDescription:
    text: str

    @staticmethod
    def _marker(kind: str) -> str:
        if kind not in MEDIA_KINDS:
            raise ValueError(f"unknown media kind: {kind!r}")
        return f"m={kind} "

    @property
    def has_video(self) -> bool:
        return self._marker("video") in self.text

    @property
    def has_audio(self) -> bool:
        return self._marker("audio") in self.text

    def track_control(self, kind: str) -> Optional[str]:
        """Return the control identifier of the first ``kind`` media section.

        None when the section or its control attribute is missing.
        """
        beg = self.text.find(self._marker(kind))
        if beg == -1:
            return None
        beg = self.text.find(CONTROL, beg)
        if beg == -1:
            return None
        beg += len(CONTROL)
        end = self.text.find("\n", beg)
        if end == -1:
            end = len(self.text)
        return self.text[beg:end].rstrip("\r")

    def tracks(self) -> Dict[str, str]:
        """Map each present media kind to its control identifier, video first."""
        found = {}
        for kind in MEDIA_KINDS:
            control = self.track_control(kind)
            if control is not None:
                found[kind] = control
        return found

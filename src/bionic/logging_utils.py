from __future__ import annotations

_DEBUG_LOG = False


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def debug_log(message: str) -> None:
    if _DEBUG_LOG:
        print(f"[bionic debug] {message}", flush=True)


__all__ = ["debug_log", "set_debug_logging"]

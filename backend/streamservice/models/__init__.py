from .videos import Video, VideoStatus, TERMINAL_STATUSES, TITLE_MAX_LENGTH, can_transition, utc_now

__all__ = ['Video', 'VideoStatus', 'TERMINAL_STATUSES', 'TITLE_MAX_LENGTH', 'can_transition', 'utc_now']

"""Background execution — host schedulers and the async statement executor."""

from sqlutil.tasks.host import AsyncioHost, Host, ThreadPoolHost

__all__ = ["AsyncioHost", "Host", "ThreadPoolHost"]

import threading
from typing import Any


class SingletonMeta(type):
  """
  A thread-safe Singleton metaclass.
  """

  _instances: dict[type, Any] = {}
  _lock = threading.Lock()

  def __call__(cls, *args: Any, **kwargs: Any) -> Any:
    # Connection handler threads may race on first access.
    with SingletonMeta._lock:
      if cls not in SingletonMeta._instances:
        instance = super().__call__(*args, **kwargs)
        SingletonMeta._instances[cls] = instance
    return SingletonMeta._instances[cls]

  @classmethod
  def reset(mcs, cls: type) -> None:
    """Forget the cached instance of cls so the next call builds a fresh one."""
    with mcs._lock:
      mcs._instances.pop(cls, None)

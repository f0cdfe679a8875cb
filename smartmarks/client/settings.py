import os
from dataclasses import dataclass


@dataclass
class ClientSettings:
    base_url: str = "http://127.0.0.1:8073"
    username: str | None = None
    password: str | None = None
    timeout: float = 10.0
    poll_interval: float = 1.0
    feed_wait: float = 20.0

    @classmethod
    def from_env(cls) -> "ClientSettings":
        return cls(
            base_url=os.environ.get("SMARTMARKS_URL", cls.base_url),
            username=os.environ.get("SMARTMARKS_USERNAME") or None,
            password=os.environ.get("SMARTMARKS_PASSWORD") or None,
            timeout=float(os.environ.get("SMARTMARKS_TIMEOUT", str(cls.timeout))),
            poll_interval=float(
                os.environ.get("SMARTMARKS_POLL_INTERVAL", str(cls.poll_interval))
            ),
            feed_wait=float(os.environ.get("SMARTMARKS_FEED_WAIT", str(cls.feed_wait))),
        )

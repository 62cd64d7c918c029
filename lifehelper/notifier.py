from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request

logger = logging.getLogger(__name__)


class Notifier:
    def send(self, title: str, body: str, priority: str = "normal") -> bool:
        raise NotImplementedError


class NoopNotifier(Notifier):
    def send(self, title: str, body: str, priority: str = "normal") -> bool:
        logger.debug("No notifier configured, dropping %r", title)
        return False


class _HttpNotifier(Notifier):
    max_attempts = 3
    timeout_s = 5

    def _post(self, url: str, data: bytes, headers: dict[str, str]) -> bool:
        req = urllib.request.Request(url, data=data, headers=headers, method="POST")
        for attempt in range(1, self.max_attempts + 1):
            try:
                with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                    resp.read()
                return True
            except (urllib.error.URLError, TimeoutError, OSError) as exc:
                if attempt >= self.max_attempts:
                    logger.warning("Notification to %s failed after %d attempts: %s", url, attempt, exc)
                    return False
                time.sleep(0.25 * attempt)
        return False


class DiscordNotifier(_HttpNotifier):
    def __init__(self, webhook_url: str) -> None:
        self.webhook_url = webhook_url

    def send(self, title: str, body: str, priority: str = "normal") -> bool:
        payload = {"content": f"**{title}**\n{body}"}
        return self._post(self.webhook_url, json.dumps(payload).encode("utf-8"), {"Content-Type": "application/json"})


class NtfyNotifier(_HttpNotifier):
    def __init__(self, topic_url: str) -> None:
        self.topic_url = topic_url

    def send(self, title: str, body: str, priority: str = "normal") -> bool:
        headers = {"Title": title, "Priority": "3" if priority == "normal" else "4", "Tags": "white_check_mark"}
        return self._post(self.topic_url, body.encode("utf-8"), headers)


def build_notifier(settings: dict) -> Notifier:
    if settings.get("discord_webhook_url"):
        return DiscordNotifier(settings["discord_webhook_url"])
    if settings.get("ntfy_topic_url"):
        return NtfyNotifier(settings["ntfy_topic_url"])
    return NoopNotifier()

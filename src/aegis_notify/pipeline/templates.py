"""Push notification templates loaded from YAML."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from aegis_notify.core.types import NotificationKind, PushRequest

_DEFAULT_TEMPLATES_PATH = Path(__file__).resolve().parents[3] / "config" / "push_templates.yml"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class PushTemplate(BaseModel):
    kind: NotificationKind
    title: str
    body: str
    channel: str | None = None
    data: dict[str, str] = Field(default_factory=dict)


_BUILTIN_TEMPLATES: dict[NotificationKind, PushTemplate] = {
    NotificationKind.CHAT_MESSAGE: PushTemplate(
        kind=NotificationKind.CHAT_MESSAGE,
        title="{sender_name}",
        body="{body}",
        channel="chat",
        data={"groupId": "{group_id}", "screen": "/chat?groupId={group_id}"},
    ),
}


class PushTemplateEngine:
    """Renders PushRequests for each NotificationKind.

    Templates come from the YAML file when it exists; the chat message
    template has a built-in fallback so chat fan-out works without it.
    """

    def __init__(self, templates_path: str | Path | None = None) -> None:
        self._templates: dict[NotificationKind, PushTemplate] = dict(_BUILTIN_TEMPLATES)
        self._load_templates(Path(templates_path) if templates_path else _DEFAULT_TEMPLATES_PATH)

    def _load_templates(self, path: Path) -> None:
        if not path.exists():
            return
        with open(path) as fh:
            data = yaml.safe_load(fh) or {}
        for kind, tmpl_data in data.get("templates", {}).items():
            self._templates[NotificationKind(kind)] = PushTemplate(
                kind=kind,
                title=tmpl_data.get("title", ""),
                body=tmpl_data.get("body", ""),
                channel=tmpl_data.get("channel"),
                data={k: str(v) for k, v in (tmpl_data.get("data") or {}).items()},
            )

    @property
    def templates(self) -> dict[NotificationKind, PushTemplate]:
        return dict(self._templates)

    def build(
        self,
        kind: NotificationKind,
        recipient_user_id: int,
        context: dict[str, Any] | None = None,
    ) -> PushRequest:
        """Render the template for ``kind`` into a request for one recipient."""
        context = context or {}
        template = self._templates.get(kind)
        if template is None:
            raise KeyError(f"No push template for {kind.value!r}")

        data: dict[str, Any] = {"type": kind.value}
        data.update({k: self.render(v, context) for k, v in template.data.items()})
        return PushRequest(
            recipient_user_id=recipient_user_id,
            title=self.render(template.title, context),
            body=self.render(template.body, context),
            data=data,
            channel_id=template.channel,
        )

    @staticmethod
    def render(template_str: str, context: dict[str, Any]) -> str:
        """Single-pass ``{key}`` substitution.

        A substituted value is never re-expanded, and unknown placeholders
        are preserved in the output.
        """
        str_context = {k: str(v) for k, v in context.items()}

        def _replace(m: re.Match) -> str:
            return str_context.get(m.group(1), m.group(0))

        return _PLACEHOLDER.sub(_replace, template_str)

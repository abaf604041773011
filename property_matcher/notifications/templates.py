"""Template rendering for match messages using Jinja2.

Messages are plain chat text, so autoescaping is off; StrictUndefined turns
a missing context key into an error instead of an empty string.
"""

from typing import Any, Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from property_matcher.logging import get_logger

from .models import NotificationTemplateError

logger = get_logger(__name__, component="notification")


class MessageRenderer:
    """Renders the match alert message from the message_templates package directory."""

    def __init__(
        self,
        template_dir: str = "message_templates",
        template_name: str = "match_alert.txt.j2",
    ):
        """
        Args:
            template_dir: Directory name within property_matcher.notifications
            template_name: Filename of the message template
        """
        self.template_name = template_name
        self.env = Environment(
            loader=PackageLoader("property_matcher.notifications", template_dir),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, context: Dict[str, Any]) -> str:
        """Render the message text.

        Raises:
            NotificationTemplateError: If the template is missing or a variable is undefined
        """
        try:
            template = self.env.get_template(self.template_name)
            text = template.render(context).strip()
        except TemplateError as e:
            error_msg = f"Template rendering failed: {e}"
            logger.error(error_msg, extra={"event": "notification.render.failed"}, exc_info=True)
            raise NotificationTemplateError(error_msg) from e

        logger.debug(
            "Rendered match message",
            extra={"event": "notification.render.completed", "length": len(text)},
        )
        return text

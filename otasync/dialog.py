"""Update confirmation prompt.

Rendering is up to the host: a :class:`ConfirmationPresenter` shows a title,
a message and an ordered list of buttons and must activate exactly one of
them exactly once.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from .models import RemotePackage
from .options import UpdateDialogOptions


@dataclass
class DialogButton:
    text: str
    on_activate: Callable[[], None]


class ConfirmationPresenter(Protocol):
    def present(self, title: str, message: str, buttons: list[DialogButton]) -> None: ...


def build_prompt(
    package: RemotePackage,
    options: UpdateDialogOptions,
    *,
    on_ignore: Callable[[], None],
    on_install: Callable[[], None],
) -> tuple[str, str, list[DialogButton]]:
    """Return ``(title, message, buttons)`` for *package*.

    Mandatory updates only offer the install action.  The install button
    is always last so it renders rightmost.
    """
    buttons: list[DialogButton] = []
    if package.is_mandatory:
        message = options.mandatory_update_message
        install_text = options.mandatory_continue_button_label
    else:
        message = options.optional_update_message
        install_text = options.optional_install_button_label
        buttons.append(DialogButton(options.optional_ignore_button_label, on_ignore))
    buttons.append(DialogButton(install_text, on_install))

    if options.append_release_description and package.description:
        message += f"{options.description_prefix} {package.description}"
    return options.title, message, buttons

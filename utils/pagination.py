"""Pagination helpers for the expense list."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from utils.logging import logger


def page_count(total_items: int, per_page: int) -> int:
    return max(1, (total_items - 1) // per_page + 1)


def get_current_page_from_markup(reply_markup: InlineKeyboardMarkup | None) -> int:
    """Find the current page from the highlighted '-N-' button of the last keyboard row."""
    if not reply_markup or not reply_markup.inline_keyboard:
        return 0

    for button in reply_markup.inline_keyboard[-1]:
        if button.text.startswith("-") and button.text.endswith("-"):
            return int(button.text.strip("-")) - 1

    return 0


def create_pagination_buttons(
    current_page: int, total_pages: int, callback_prefix: str
) -> list[InlineKeyboardButton]:
    """Create pagination buttons with first and last pages always visible.

    The current page is shown as "-N-" and is not clickable; pages farther
    than one step from it collapse into "...".

    Args:
        current_page: Current page number (0-based)
        total_pages: Total number of pages
        callback_prefix: Prefix for the callback data, e.g. 'list_page'
    """
    logger.debug(f"Creating pagination buttons: page {current_page + 1}/{total_pages}")

    def page_button(page: int) -> InlineKeyboardButton:
        if page == current_page:
            return InlineKeyboardButton(f"-{page + 1}-", callback_data="noop")
        return InlineKeyboardButton(str(page + 1), callback_data=f"{callback_prefix}:{page}")

    if total_pages <= 1:
        return [page_button(0)]

    buttons = [page_button(0)]
    if current_page > 2:
        buttons.append(InlineKeyboardButton("...", callback_data="noop"))

    for page in range(max(1, current_page - 1), min(total_pages - 1, current_page + 2)):
        buttons.append(page_button(page))

    if current_page < total_pages - 3:
        buttons.append(InlineKeyboardButton("...", callback_data="noop"))

    buttons.append(page_button(total_pages - 1))
    return buttons

from telegram import InlineKeyboardMarkup

from utils.pagination import create_pagination_buttons, get_current_page_from_markup, page_count


def labels(buttons):
    return [button.text for button in buttons]


def test_page_count():
    assert page_count(0, 5) == 1
    assert page_count(5, 5) == 1
    assert page_count(6, 5) == 2


def test_buttons_collapse_distant_pages():
    buttons = create_pagination_buttons(5, 10, "list_page")

    assert labels(buttons) == ["1", "...", "5", "-6-", "7", "...", "10"]
    assert buttons[2].callback_data == "list_page:4"
    assert buttons[3].callback_data == "noop"


def test_current_page_is_read_back_from_markup():
    markup = InlineKeyboardMarkup([create_pagination_buttons(2, 4, "list_page")])

    assert get_current_page_from_markup(markup) == 2
    assert get_current_page_from_markup(None) == 0

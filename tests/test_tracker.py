import csv
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

import pytest
from factories import make_expense

import config
from models import Category
from remote import HttpExpenseRepository, InMemoryExpenseRepository, RemoteError
from tracker import ExpenseTracker
from utils.plotting import ChartError, generate_category_chart


async def test_add_expense_validates_and_stores(tracker):
    record = await tracker.add_expense("12,5", "Food", "  lunch ", "2026-01-02")

    assert record.amount == Decimal("12.50")
    assert record.category is Category.FOOD
    assert record.description == "lunch"
    assert record.date == date(2026, 1, 2)
    assert record.is_provisional
    assert tracker.expenses() == [record]
    assert tracker.status().pending == 1


async def test_add_expense_defaults_to_today(tracker):
    record = await tracker.add_expense("3", "transport", "bus")

    assert record.date == date.today()


@pytest.mark.parametrize(
    "amount, category, description",
    [("-1", "food", "x"), ("5", "groceries", "x"), ("5", "food", "   ")],
)
async def test_invalid_input_is_rejected_without_storing(tracker, amount, category, description):
    with pytest.raises(ValueError):
        await tracker.add_expense(amount, category, description)

    assert tracker.store.records() == []


async def test_future_date_is_rejected(tracker):
    with pytest.raises(ValueError, match="later than today"):
        await tracker.add_expense("5", "food", "dinner", date.today() + timedelta(days=1))


async def test_edit_expense(tracker):
    record = await tracker.add_expense("5", "food", "dinner")

    edited = await tracker.edit_expense(record.key, amount="7.25", category="other")

    assert edited.amount == Decimal("7.25")
    assert edited.category is Category.OTHER
    assert edited.description == "dinner"
    assert await tracker.edit_expense("missing", amount="1") is None


async def test_deleted_expenses_are_hidden_and_not_counted(tracker):
    await tracker.store.save(
        [
            make_expense("a", amount="10.00"),
            make_expense("b", amount="2.50", category=Category.TRANSPORT),
            make_expense("c", amount="99.00", deleted=True),
        ]
    )
    await tracker.delete_expense("b")

    assert [expense.key for expense in tracker.expenses()] == ["a"]
    assert tracker.get("b") is None
    assert tracker.get("c") is None
    assert tracker.total_by_category() == {Category.FOOD: Decimal("10.00")}


async def test_expenses_are_listed_newest_first(tracker):
    older = await tracker.add_expense("1", "food", "older", "2026-01-01")
    newer = await tracker.add_expense("2", "food", "newer", "2026-01-05")

    assert tracker.expenses() == [newer, older]


async def test_summary_ranks_categories(tracker):
    await tracker.add_expense("10", "food", "lunch")
    await tracker.add_expense("5.5", "food", "snack")
    await tracker.add_expense("30", "travel", "train")
    await tracker.add_expense("1", "other", "stamp")

    total, top = tracker.summary(top=2)

    assert total == Decimal("46.50")
    assert top == [(Category.TRAVEL, Decimal("30.00")), (Category.FOOD, Decimal("15.50"))]


async def test_export_csv_contains_visible_expenses(tracker):
    await tracker.add_expense("4.20", "food", "coffee, large", "2026-01-03")
    removed = await tracker.add_expense("8", "food", "removed")
    await tracker.delete_expense(removed.key)

    rows = list(csv.reader(StringIO(tracker.export_csv())))

    assert rows == [["date", "description", "category", "amount"], ["2026-01-03", "coffee, large", "food", "4.20"]]


async def test_status_reports_connectivity_and_pending(tracker):
    await tracker.add_expense("1", "food", "tea")

    status = tracker.status()

    assert status.online is False
    assert status.syncing is False
    assert status.last_synced is None
    assert status.pending == 1


async def test_mutation_while_online_schedules_a_sync(tracker, remote):
    tracker.orchestrator.online = True

    await tracker.add_expense("1", "food", "tea")
    await tracker.orchestrator.synchronize()

    assert len(remote.records()) == 1
    assert tracker.status().pending == 0


def test_from_config_selects_the_remote_backend(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "STORAGE_PATH", str(tmp_path / "expenses.db"))

    monkeypatch.setattr(config, "REMOTE_BACKEND", "memory")
    assert isinstance(ExpenseTracker.from_config().orchestrator._remote, InMemoryExpenseRepository)

    monkeypatch.setattr(config, "REMOTE_BACKEND", "http")
    assert isinstance(ExpenseTracker.from_config().orchestrator._remote, HttpExpenseRepository)


async def test_category_chart_renders_png(tracker):
    await tracker.add_expense("10", "food", "lunch")
    await tracker.add_expense("3", "transport", "bus")

    for chart_type in ("bar", "pie"):
        image = generate_category_chart(tracker.total_by_category(), "USD", chart_type)
        assert image.getvalue().startswith(b"\x89PNG")


def test_category_chart_errors():
    with pytest.raises(ChartError):
        generate_category_chart({}, "USD")
    with pytest.raises(ChartError):
        generate_category_chart({Category.FOOD: Decimal("1")}, "USD", "line")


async def test_export_while_offline_uses_this_device(tracker, remote):
    await tracker.add_expense("4.20", "food", "coffee", "2026-01-03")

    rows = list(csv.reader(StringIO(await tracker.export())))

    assert rows[1] == ["2026-01-03", "coffee", "food", "4.20"]
    assert remote.push_calls == []


async def test_export_while_online_syncs_then_uses_the_server(tracker, remote):
    remote.seed(make_expense("other", amount="1.00", description="from phone"))
    remote.seed(make_expense("gone", deleted=True))
    await tracker.add_expense("4.20", "food", "coffee", "2026-01-03")
    tracker.orchestrator.online = True

    rows = list(csv.reader(StringIO(await tracker.export())))

    assert rows[0] == ["date", "description", "category", "amount"]
    assert sorted(row[1] for row in rows[1:]) == ["coffee", "from phone"]
    assert tracker.status().pending == 0


async def test_export_falls_back_to_this_device_when_server_export_fails(mocker, tracker, remote):
    await tracker.add_expense("4.20", "food", "coffee", "2026-01-03")
    tracker.orchestrator.online = True
    mocker.patch.object(remote, "export_csv", side_effect=RemoteError("500 Server Error"))

    assert await tracker.export() == tracker.export_csv()

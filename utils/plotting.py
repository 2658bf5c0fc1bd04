from decimal import Decimal
from io import BytesIO

import matplotlib

matplotlib.use("Agg")  # Rendered off-screen for sending as photos

import matplotlib.figure  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from models import Category  # noqa: E402
from utils.logging import logger  # noqa: E402


class ChartError(ValueError):
    """Raised when a category chart cannot be produced."""

    def __init__(self, message: str = None, original_error: Exception = None):
        if message is None:
            message = "An error occurred in chart generation"
        super().__init__(message)
        self.original_error = original_error

    @classmethod
    def no_data(cls):
        return cls("There are no expenses to chart yet")

    @classmethod
    def unsupported_chart_type(cls, chart_type: str):
        return cls(f"Unsupported chart type: {chart_type}")

    @classmethod
    def from_exception(cls, error: Exception):
        return cls(f"Failed to generate chart: {error!s}", error)


def totals_frame(totals: dict[Category, Decimal]) -> pd.DataFrame:
    """Category totals as a DataFrame with 'category' and 'total' columns, largest first."""
    data = pd.DataFrame(
        [(category.value.capitalize(), float(total)) for category, total in totals.items()],
        columns=["category", "total"],
    )
    return data.sort_values(by="total", ascending=False).reset_index(drop=True)


class ChartGenerator:
    """Renders expense totals per category."""

    def __init__(self, data: pd.DataFrame, currency: str, dpi: int = 150):
        """
        Args:
            data: DataFrame with columns 'category' and 'total'
            currency: Currency label shown next to amounts
            dpi: Resolution for saved images
        """
        if data.empty:
            raise ChartError.no_data()
        self.data = data
        self.currency = currency
        self.total = data["total"].sum()
        self.dpi = dpi
        self.figure: matplotlib.figure.Figure | None = None

    def create_bar_chart(self) -> matplotlib.figure.Figure:
        logger.debug(f"Creating bar chart for {len(self.data)} categories")
        self.figure = plt.figure(figsize=(10, 6))

        bars = plt.bar(
            self.data["category"],
            self.data["total"],
            color=plt.cm.Paired(range(len(self.data))),
        )
        for bar, total in zip(bars, self.data["total"], strict=True):
            plt.text(
                bar.get_x() + bar.get_width() / 2,
                bar.get_height(),
                f"{total:.2f} {self.currency}\n({total / self.total * 100:.1f}%)",
                ha="center",
                va="bottom",
                fontsize=9,
            )

        plt.grid(axis="y", linestyle="--", alpha=0.7)
        plt.ylabel(f"Total ({self.currency})")
        plt.title(f"Expenses by Category\nTotal: {self.total:.2f} {self.currency}")
        plt.xticks(rotation=45, ha="right")
        plt.tight_layout()
        return self.figure

    def create_pie_chart(self) -> matplotlib.figure.Figure:
        logger.debug(f"Creating pie chart for {len(self.data)} categories")
        self.figure = plt.figure(figsize=(8, 8))

        plt.pie(
            self.data["total"],
            labels=self.data["category"],
            autopct=lambda p: f"{p:.1f}%",
            startangle=140,
            colors=plt.cm.Paired(range(len(self.data))),
        )
        plt.title(f"Expense Distribution\nTotal: {self.total:.2f} {self.currency}")
        plt.axis("equal")
        return self.figure

    def save_chart_to_buffer(self) -> BytesIO:
        buf = BytesIO()
        self.figure.savefig(buf, format="png", dpi=self.dpi, bbox_inches="tight")
        buf.seek(0)
        return buf

    def close(self) -> None:
        if self.figure is not None:
            plt.close(self.figure)
            self.figure = None


def generate_category_chart(
    totals: dict[Category, Decimal], currency: str, chart_type: str = "pie"
) -> BytesIO:
    """Render category totals as a PNG image.

    Raises:
        ChartError: If chart_type is not 'bar' or 'pie', there is nothing to
            chart, or rendering fails
    """
    if chart_type not in ("bar", "pie"):
        raise ChartError.unsupported_chart_type(chart_type)

    logger.info(f"Generating {chart_type} chart of category totals")
    chart = ChartGenerator(totals_frame(totals), currency)
    try:
        if chart_type == "bar":
            chart.create_bar_chart()
        else:
            chart.create_pie_chart()
        return chart.save_chart_to_buffer()
    except Exception as e:
        logger.error(f"Error generating {chart_type} chart: {e}")
        raise ChartError.from_exception(e) from e
    finally:
        chart.close()

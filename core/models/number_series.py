from django.db import models, transaction

from core.errors import InvalidDocument


class NumberSeries(models.Model):
    """Sequence of invoice or quote numbers for one company.

    `prefix` may contain "{year}", e.g. "FA-{year}-" gives "FA-2024-0001".
    With `yearly_reset`, the counter restarts at 1 on the first number of a
    new year, which is the usual French practice ("chronological and
    continuous" within the year). Once a year has been reset, numbers can no
    longer be allocated for an earlier year: the old counter is gone.

    Numbers are only allocated when a document is sent, so drafts never
    consume a number and a series has no gaps.
    """

    company = models.ForeignKey("core.Company", on_delete=models.CASCADE, related_name="number_series")

    code = models.CharField(max_length=50)
    prefix = models.CharField(max_length=50, blank=True, default="")
    next_number = models.IntegerField(default=1)
    min_width = models.IntegerField(default=1)

    yearly_reset = models.BooleanField(default=False)
    # Year of the last allocated number
    current_year = models.IntegerField(null=True, blank=True)

    class Meta:
        unique_together = ("company", "code")
        ordering = ["code"]
        verbose_name_plural = "number series"

    def __str__(self):
        return f"{self.company} {self.code}"

    def format_number(self, number: int, year: int) -> str:
        prefix = self.prefix.replace("{year}", str(year))
        return f"{prefix}{str(number).zfill(self.min_width)}"

    @transaction.atomic
    def allocate(self, on_date) -> str:
        """Return the next number for a document dated `on_date`.

        The row is locked (select_for_update) until the surrounding
        transaction commits; two documents sent at the same time can never
        get the same number.
        """
        series = type(self).objects.select_for_update().get(pk=self.pk)

        year = on_date.year
        if series.yearly_reset and series.current_year is not None:
            if year < series.current_year:
                raise InvalidDocument(
                    f"Series {series.code} is numbering {series.current_year}; "
                    f"cannot number a document dated {on_date.isoformat()}."
                )
            if year > series.current_year:
                series.next_number = 1

        current = series.next_number
        series.next_number = current + 1
        series.current_year = max(year, series.current_year or year)
        series.save(update_fields=["next_number", "current_year"])

        self.next_number = series.next_number
        self.current_year = series.current_year
        return series.format_number(current, year)

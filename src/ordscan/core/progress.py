"""Progress bar wrapper used by scan loops."""

import sys
from collections.abc import Iterable, Iterator

import progressbar


def progress_iterator(
    iterable: Iterable, total: int, desc: str = "", enabled: bool = True
) -> Iterator:
    """Wrap an iterable with a progressbar2 display on stdout.

    The bar is finalized in a try/finally block so that an exception raised
    by the scan (or an early break) doesn't leave terminal output corrupted.

    Args:
        iterable: Items to iterate (test units, chunks, ...).
        total: Expected number of items.
        desc: Optional description prefix.
        enabled: When False the items are passed through untouched.

    Yields:
        Items from the wrapped iterable.
    """
    if not enabled or total <= 0:
        yield from iterable
        return

    widgets = [
        f"{desc}: " if desc else "",
        progressbar.Counter(),
        f"/{total} ",
        progressbar.Percentage(),
        " ",
        progressbar.Bar(),
        " ",
        progressbar.ETA(),
    ]
    bar = progressbar.ProgressBar(max_value=total, widgets=widgets, fd=sys.stdout)
    bar.start()
    try:
        for i, item in enumerate(iterable):
            yield item
            bar.update(min(i + 1, total))
    finally:
        bar.finish()

"""Counters and histograms for latency statistics."""

from __future__ import annotations

import logging
import math
from bisect import bisect_right
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, TextIO

logger = logging.getLogger(__name__)

# Bucket upper bounds. Intervals are ]previous, current]; there is one special
# first bucket for values <= 0 and one extra last bucket for values > 100000.
BUCKET_VALUES = (
    0, 1, 2, 3, 4, 5, 6,
    7, 8, 9, 10, 11,
    12, 14, 16, 18, 20,
    25, 30, 35, 40, 45, 50,
    60, 70, 80, 90, 100,
    120, 140, 160, 180, 200,
    250, 300, 350, 400, 450, 500,
    600, 700, 800, 900, 1000,
    2000, 3000, 4000, 5000, 7500, 10000,
    20000, 30000, 40000, 50000, 75000, 100000,
)
_NUM_VALUES = len(BUCKET_VALUES)
_NUM_BUCKETS = _NUM_VALUES + 1
_FIRST_VALUE = float(BUCKET_VALUES[0])
_LAST_VALUE = float(BUCKET_VALUES[-1])


def _format_g(x: float, precision: Optional[int] = None) -> str:
    """Format a float like a %g verb: shortest digits, or `precision` significant digits."""
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "+Inf" if x > 0 else "-Inf"
    if precision is not None:
        return "%.*g" % (precision, x)
    if x == 0:
        return "-0" if math.copysign(1.0, x) < 0 else "0"
    sign, digits, exponent = Decimal(repr(x)).as_tuple()
    decimal_point = len(digits) + exponent
    ds = "".join(str(d) for d in digits).rstrip("0")
    prefix = "-" if sign else ""
    exp = decimal_point - 1
    if exp < -4 or exp >= 6:
        mantissa = ds[0] + ("." + ds[1:] if len(ds) > 1 else "")
        exp_sign = "-" if exp < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(exp):02d}"
    if decimal_point <= 0:
        body = "0." + "0" * (-decimal_point) + ds
    elif decimal_point >= len(ds):
        body = ds + "0" * (decimal_point - len(ds))
    else:
        body = ds[:decimal_point] + "." + ds[decimal_point:]
    return prefix + body


def _counter_line(msg, count, avg, std_dev, min_value, max_value, total) -> str:
    return (
        f"{msg} : count {count} avg {_format_g(avg, 8)} +/- {_format_g(std_dev, 4)}"
        f" min {_format_g(min_value)} max {_format_g(max_value)} sum {_format_g(total, 9)}"
    )


class Counter:
    """Records values and computes count, average, min, max and standard deviation."""

    def __init__(self) -> None:
        self.count = 0
        self.min = 0.0
        self.max = 0.0
        self.sum = 0.0
        self._sum_of_squares = 0.0

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(count={self.count}, min={self.min}, "
            f"max={self.max}, sum={self.sum})"
        )

    def record(self, v: float) -> None:
        """Record one data point."""
        self.record_n(v, 1)

    def record_n(self, v: float, n: int) -> None:
        """Record the same value n times."""
        is_first = self.count == 0
        self.count += n
        if is_first:
            self.min = v
            self.max = v
        elif v < self.min:
            self.min = v
        elif v > self.max:
            self.max = v
        s = v * n
        self.sum += s
        self._sum_of_squares += s * s

    def avg(self) -> float:
        """Return the average (NaN when there is no data)."""
        if self.count == 0:
            return math.nan
        return self.sum / self.count

    def std_dev(self) -> float:
        """Return the standard deviation (NaN when there is no data)."""
        if self.count == 0:
            return math.nan
        f_count = float(self.count)
        sigma = (self._sum_of_squares - self.sum * self.sum / f_count) / f_count
        if sigma < 0:
            logger.warning("Unexpected negative sigma for %r: %s", self, _format_g(sigma))
            return 0.0
        return math.sqrt(sigma)

    def _summary(self, msg: str) -> str:
        return _counter_line(
            msg, self.count, self.avg(), self.std_dev(), self.min, self.max, self.sum
        )

    def print(self, out: TextIO, msg: str) -> None:
        """Write a one line summary to out."""
        out.write(self._summary(msg) + "\n")

    def log(self, msg: str) -> None:
        """Log a one line summary."""
        logger.info("%s", self._summary(msg))

    def reset(self) -> None:
        """Clear all recorded data."""
        Counter.__init__(self)

    def _copy_counter_from(self, src: Counter) -> None:
        self.count = src.count
        self.min = src.min
        self.max = src.max
        self.sum = src.sum
        self._sum_of_squares = src._sum_of_squares

    def _merge_counter(self, src: Counter) -> None:
        self.count += src.count
        if src.min < self.min:
            self.min = src.min
        if src.max > self.max:
            self.max = src.max
        self.sum += src.sum
        self._sum_of_squares += src._sum_of_squares

    def transfer(self, src: Counter) -> None:
        """Merge the data of src into this counter and clear src."""
        if src.count == 0:
            return
        if self.count == 0:
            self._copy_counter_from(src)
        else:
            self._merge_counter(src)
        src.reset()


@dataclass
class Interval:
    """A range from start to end."""

    start: float
    end: float


@dataclass
class Bucket(Interval):
    """One exported histogram bucket with its cumulative percent and count."""

    percent: float
    count: int


@dataclass
class Percentile:
    """A percentile and the estimated value at that percentile."""

    percentile: float
    value: float


@dataclass
class HistogramData:
    """Exported histogram data: sorted buckets covering [min, max]."""

    count: int = 0
    min: float = 0.0
    max: float = 0.0
    sum: float = 0.0
    avg: float = 0.0
    std_dev: float = 0.0
    data: list[Bucket] = field(default_factory=list)
    percentiles: list[Percentile] = field(default_factory=list)

    def calc_percentile(self, percentile: float) -> float:
        """Estimate the value below which `percentile` percent of the data lies."""
        if not self.data:
            logger.error(
                "Unexpected call to calc_percentile(%s) with no data", _format_g(percentile)
            )
            return 0.0
        if percentile >= 100:
            return self.max
        pp = 100.0 / self.count
        if percentile <= pp:
            return self.min
        for bucket in self.data:
            if percentile <= bucket.percent:
                return bucket.start + (percentile - pp) / (bucket.percent - pp) * (
                    bucket.end - bucket.start
                )
            pp = bucket.percent
        return self.max

    def calc_percentiles(self, percentiles: Optional[Iterable[float]]) -> HistogramData:
        """Compute and append the requested percentiles; returns self."""
        if self.count == 0:
            return self
        for p in percentiles or ():
            self.percentiles.append(Percentile(p, self.calc_percentile(p)))
        return self

    def print(self, out: TextIO, msg: str) -> None:
        """Write the summary, buckets and percentiles to out."""
        if not self.data:
            out.write(f"{msg} : no data\n")
            return
        out.write(
            _counter_line(msg, self.count, self.avg, self.std_dev, self.min, self.max, self.sum)
            + "\n"
        )
        out.write("# range, mid point, percentile, count\n")
        for i, bucket in enumerate(self.data):
            sep = ">=" if i == 0 else ">"
            mid = (bucket.start + bucket.end) / 2.0
            out.write(
                f"{sep} {_format_g(bucket.start, 6)} <= {_format_g(bucket.end, 6)} , "
                f"{_format_g(mid, 6)} , {bucket.percent:.2f}, {bucket.count}\n"
            )
        for p in self.percentiles:
            out.write(f"# target {_format_g(p.percentile)}% {_format_g(p.value, 6)}\n")


class Histogram(Counter):
    """A Counter that also keeps a bucketed histogram of (v - offset) / divider."""

    def __init__(self, offset: float, divider: float) -> None:
        if divider == 0:
            raise ValueError("histogram divider can not be zero")
        super().__init__()
        self.offset = float(offset)
        self.divider = float(divider)
        self.hdata = [0] * _NUM_BUCKETS

    def __repr__(self) -> str:
        return (
            f"Histogram(offset={self.offset}, divider={self.divider}, count={self.count}, "
            f"min={self.min}, max={self.max}, sum={self.sum})"
        )

    def record(self, v: float) -> None:
        """Record one data point."""
        self.record_n(v, 1)

    def record_n(self, v: float, n: int) -> None:
        """Record the same data point n times."""
        super().record_n(v, n)
        self._add(v, n)

    def _add(self, v: float, count: int) -> None:
        # Intervals are open on the left, so a value exactly on a boundary
        # must fall in the previous bucket: hence the small epsilon.
        scaled = (v - self.offset) / self.divider - 0.0001
        if scaled <= _FIRST_VALUE:
            idx = 0
        elif scaled > _LAST_VALUE:
            idx = _NUM_BUCKETS - 1
        else:
            idx = bisect_right(BUCKET_VALUES, int(scaled))
        self.hdata[idx] += count

    def export(self) -> HistogramData:
        """Return the histogram as HistogramData (without percentiles)."""
        res = HistogramData(
            count=self.count,
            min=self.min,
            max=self.max,
            sum=self.sum,
            avg=self.avg(),
            std_dev=self.std_dev(),
        )
        last_idx = max((i for i, c in enumerate(self.hdata) if c > 0), default=-1)
        if last_idx == -1:
            return res
        multiplier = self.divider
        offset = self.offset
        prev = BUCKET_VALUES[0]
        total = 0
        for i, bucket_count in enumerate(self.hdata[: last_idx + 1]):
            if bucket_count == 0:
                if i < _NUM_VALUES:
                    prev = BUCKET_VALUES[i]
                continue
            total += bucket_count
            start = self.min if not res.data else multiplier * prev + offset
            percent = 100.0 * total / self.count
            if i < _NUM_VALUES:
                cur = BUCKET_VALUES[i]
                end = multiplier * cur + offset
                prev = cur
            else:
                start = multiplier * prev + offset
                end = self.max
            res.data.append(Bucket(start, end, percent, bucket_count))
        res.data[-1].end = self.max
        return res

    def print(self, out: TextIO, msg: str, percentiles: Optional[Iterable[float]]) -> None:
        """Write the histogram and the requested percentiles to out."""
        self.export().calc_percentiles(percentiles).print(out, msg)

    def log(self, msg: str, percentiles: Optional[Iterable[float]]) -> None:
        """Log the histogram and the requested percentiles."""
        buffer = _StringSink()
        self.print(buffer, msg, percentiles)
        logger.info("%s", buffer.text().rstrip("\n"))

    def reset(self) -> None:
        """Clear the data, keeping offset and divider."""
        super().reset()
        self.hdata = [0] * _NUM_BUCKETS

    def clone(self) -> Histogram:
        """Return an independent copy."""
        copy = Histogram(self.offset, self.divider)
        copy.copy_from(self)
        return copy

    def copy_from(self, src: Histogram) -> None:
        """Copy the counter of src and add its buckets into this histogram."""
        self._copy_counter_from(src)
        self._copy_hdata_from(src)

    def _copy_hdata_from(self, src: Histogram) -> None:
        if self.divider == src.divider and self.offset == src.offset:
            self.hdata = [a + b for a, b in zip(self.hdata, src.hdata)]
            return
        for bucket in src.export().data:
            self._add((bucket.start + bucket.end) / 2, bucket.count)

    def transfer(self, src: Histogram) -> None:
        """Merge the data of src into this histogram and clear src."""
        if src.count == 0:
            return
        if self.count == 0:
            self.copy_from(src)
            src.reset()
            return
        self._copy_hdata_from(src)
        self._merge_counter(src)
        src.reset()


class _StringSink:
    def __init__(self) -> None:
        self._parts: list[str] = []

    def write(self, s: str) -> int:
        self._parts.append(s)
        return len(s)

    def text(self) -> str:
        return "".join(self._parts)


def merge(h1: Histogram, h2: Histogram) -> Histogram:
    """Merge two histograms into a new one using the lowest offset and highest divider."""
    divider = max(h1.divider, h2.divider)
    offset = min(h1.offset, h2.offset)
    merged = Histogram(offset, divider)
    merged.transfer(h1)
    merged.transfer(h2)
    return merged


def _parse_float(text: str) -> float:
    if "_" in text:
        raise ValueError(f"invalid percentile {text!r}")
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"invalid percentile {text!r}") from None


def parse_percentiles(percentiles: str) -> list[float]:
    """Parse a comma separated list of percentiles; raises ValueError if invalid or empty."""
    result = [_parse_float(part) for part in map(str.strip, percentiles.split(",")) if part]
    if not result:
        raise ValueError("list can't be empty")
    logger.debug(
        "Will use [%s] for percentiles", " ".join(_format_g(p) for p in result)
    )
    return result


def round_to_digits(v: float, digits: int) -> float:
    """Round v to `digits` digits after the decimal point (negatives round up)."""
    p = 10.0 ** digits
    scaled = v * p + 0.5
    if not math.isfinite(scaled):
        return scaled / p
    return math.floor(scaled) / p


def round_value(v: float) -> float:
    """Round to 4 digits after the decimal point."""
    return round_to_digits(v, 4)
# fortio

Building blocks for load testing:

- `fortio.stats` keeps running statistics and latency histograms.
- `fortio.tcprunner` and `fortio.udprunner` are echo clients for TCP and UDP
  load tests.
- `fortio.version` reports the package version.

The package has no dependencies outside the standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Statistics

`Counter` keeps a count, min, max, sum, average and standard deviation of the
values you record. With no data, `avg()` and `std_dev()` return NaN.
`Histogram(offset, divider)` does the same and also sorts each value into a
fixed set of buckets after computing `(value - offset) / divider`. A divider
of zero raises `ValueError`.

```python
import sys
from fortio.stats import Histogram, parse_percentiles

h = Histogram(0, 0.001)          # offset 0, divider 1 ms
for latency in (0.0012, 0.0031, 0.0049):
    h.record(latency)

h.print(sys.stdout, "latency", parse_percentiles("50, 90, 99.9"))

data = h.export().calc_percentiles([50, 99])
print(data.percentiles)
```

- `record(v)` and `record_n(v, n)` add data points.
- `export()` returns a `HistogramData` that holds the summary values and a
  list of `Bucket`s (`start`, `end`, cumulative `percent`, `count`).
- `HistogramData.calc_percentile(p)` estimates a single value.
  `calc_percentiles(ps)` appends `Percentile` entries and returns the same
  object.
- `print(out, msg, ...)` writes a text report to any object that has a
  `write` method. `log(msg, ...)` sends the same report to the `fortio.stats`
  logger.
- `transfer(src)` moves the data of one counter or histogram into another
  and clears the source. `clone()` returns an independent copy. `reset()`
  clears the data and keeps the offset and the divider.
- `merge(h1, h2)` builds a new histogram from the lower of the two offsets
  and the higher of the two dividers. It moves the data of both inputs into
  it, so the inputs end up empty.
- `round_value(v)` rounds to four decimal places. `round_to_digits(v, digits)`
  rounds to any number of places.
- `parse_percentiles("50,75,99.9")` returns a list of floats. It raises
  `ValueError` if the list is empty or if an entry is not a number.

## TCP and UDP echo clients

A client sends a payload to an echo server and checks that the reply is
exactly what it sent. If no payload is given, it builds a unique 24-byte
payload for each message with `generate_payload(conn_id, message_number)`.
A destination is written `host:port`, and may carry a `tcp://` or `udp://`
prefix and a trailing `/`.

```python
from fortio.tcprunner import TCPClient, TCPOptions

with TCPClient(TCPOptions(destination="tcp://localhost:8078/")) as client:
    reply = client.fetch()
    sockets_used = client.close()
```

`UDPClient` and `UDPOptions` in `fortio.udprunner` work in the same way.
`req_timeout` is given in seconds. A value of 0 or a negative value means the
default: 3 seconds for TCP and 0.75 seconds for UDP.

A successful fetch keeps its socket open and uses it again for the next one.
If writing to a reused socket fails, the client reconnects and retries once.
A failed fetch raises a subclass of `fortio.tcprunner.EchoError`:
`ShortWriteError`, `ShortReadError`, `LongReadError` or `MismatchError`. The
bytes that were received are kept in its `data` attribute. A UDP read that
times out raises `fortio.udprunner.EchoTimeoutError` instead. Errors while
connecting or resolving the destination are raised as `OSError`. `close()`
returns the number of sockets the client opened, and the `bytes_sent` and
`bytes_received` attributes count the traffic.

## Version

`fortio.version.short()` returns the short version string (`"dev"`).
`fortio.version.long()` adds the build information and the Python version.

## What this package does not do

There is no command-line tool, no web interface, no echo server and no
scheduler that drives clients at a target rate across several threads. The
clients send one request for each `fetch()` call, and you run them and
record their timings in a `Histogram` yourself. `TCPOptions.unix_domain_socket`
is accepted but not used: connections always go to `host:port`.
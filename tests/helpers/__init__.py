from .factories import make_metric, make_target
from .fakes import FakeElement, FakeFetcher, FakePage, card
from .metric_delta import histogram_observes, metric_delta, sample_value

__all__ = [
    "FakeElement",
    "FakeFetcher",
    "FakePage",
    "card",
    "histogram_observes",
    "make_metric",
    "make_target",
    "metric_delta",
    "sample_value",
]

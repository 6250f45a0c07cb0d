import pytest

from buzen.errors import DomainError
from buzen.network import Network, Queue


def test_queue_from_service_time():
    q = Queue.from_service(0.6, 0.08, name="disk")
    assert q.load == pytest.approx(0.048)
    assert q.visit_ratio == 0.6
    assert q.service_time == 0.08
    assert q.name == "disk"


@pytest.mark.parametrize("kwargs", [{"load": -1.0}, {"load": float("inf")}, {"load": 1.0, "visit_ratio": -0.1}, {"load": "x"}])
def test_queue_rejects_bad_values(kwargs):
    with pytest.raises(DomainError):
        Queue(**kwargs)


def test_network_properties():
    net = Network((Queue(2.0, name="cpu"), Queue(3.0, visit_ratio=0.5)), 3)
    assert net.num_queues == 2
    assert net.loads == [2.0, 3.0]
    assert net.visit_ratios == [1.0, 0.5]
    assert net.names == ["cpu", "q2"]


def test_network_needs_queues_and_a_valid_population():
    with pytest.raises(DomainError):
        Network((), 0)
    with pytest.raises(DomainError):
        Network((Queue(1.0),), -2)
    with pytest.raises(DomainError):
        Network((Queue(1.0),), 1.5)
    with pytest.raises(DomainError):
        Network((1.0,), 1)


def test_network_from_loads_checks_lengths():
    with pytest.raises(DomainError):
        Network.from_loads([1.0, 2.0], 3, visit_ratios=[1.0])


def test_network_from_dict():
    net = Network.from_dict({
        "population": 4,
        "queues": [
            {"name": "cpu", "service_time": 0.5},
            {"name": "disk", "visit_ratio": 2.0, "service_time": 0.25},
            {"load": 1.5, "visit_ratio": 3.0},
        ],
    })
    assert net.population == 4
    assert net.loads == pytest.approx([0.5, 0.5, 1.5])
    assert net.visit_ratios == [1.0, 2.0, 3.0]
    assert net.names == ["cpu", "disk", "q3"]


def test_network_from_dict_errors():
    with pytest.raises(DomainError):
        Network.from_dict({"queues": [{"load": 1.0}]})
    with pytest.raises(DomainError):
        Network.from_dict({"population": 2, "queues": [{"name": "x"}]})
    with pytest.raises(DomainError):
        Network.from_dict({"population": 2, "queues": []})

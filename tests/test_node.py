import pytest

from execservice.node import Node


def test_node_cannot_be_instantiated_directly():
    with pytest.raises(TypeError):
        Node()


@pytest.mark.parametrize("method", ["start", "stop", "get_id"])
def test_node_reports_each_abstract_method(method):
    with pytest.raises(TypeError, match=method):
        Node()
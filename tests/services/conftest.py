"""Fixtures shared by the service tests."""

import pytest

from payapp_services import PaymentApplicationService


@pytest.fixture
def line_items(make_item):
    return [
        make_item("Sitework", 1000, 200, 300, 0),
        make_item("Framing", 2000, 0, 500, 100),
    ]


@pytest.fixture
def application(default_config, line_items, make_project):
    service = PaymentApplicationService(default_config)
    return service.prepare(line_items, make_project(), run_id="run-0001")

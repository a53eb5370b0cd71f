# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for application number formatting and allocation.
"""

import threading
import pytest
from datetime import datetime, timezone
from unittest.mock import patch

from relief_api.domain.applications import (
    format_application_number,
    parse_application_sequence,
)
from relief_api.middleware.error_handler import ConflictException
from relief_api.models.requests import CreateApplicationRequest
from relief_api.services.applications import ApplicationService, MAX_NUMBER_ATTEMPTS


@pytest.fixture
def service(mongo, audit_service):
    return ApplicationService(mongo, audit_service)


class TestFormatting:
    """Number format IND<year><six digits>."""

    def test_format_pads_sequence(self):
        assert format_application_number(2024, 42) == "IND2024000042"

    def test_format_keeps_wide_sequences(self):
        assert format_application_number(2024, 1234567) == "IND20241234567"

    def test_parse_round_trip(self):
        assert parse_application_sequence("IND2024000042", 2024) == 42

    @pytest.mark.parametrize("number", [None, "", "IND2023000042", "XYZ2024000042", "IND2024"])
    def test_parse_other_years_and_garbage(self, number):
        assert parse_application_sequence(number, 2024) == 0


class TestAllocation:
    """Numbers are sequential per year and never reused."""

    def test_first_number_of_year(self, service):
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert service.generate_application_number(now) == "IND2024000001"

    def test_continues_from_existing_records(self, mongo, service):
        mongo.collections["applications"]["x"] = {"id": "x", "applicationNumber": "IND2024000117"}
        mongo.collections["applications"]["y"] = {"id": "y", "applicationNumber": "IND2023000999"}

        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert service.generate_application_number(now) == "IND2024000118"

    def test_new_year_restarts_sequence(self, mongo, service):
        mongo.collections["applications"]["x"] = {"id": "x", "applicationNumber": "IND2024000117"}

        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert service.generate_application_number(now) == "IND2025000001"

    def test_concurrent_creates_get_distinct_numbers(self, service, clerk, sample_application_data):
        request = CreateApplicationRequest.model_validate(sample_application_data)
        numbers = []
        lock = threading.Lock()
        barrier = threading.Barrier(10)

        def create():
            barrier.wait()
            application = service.create_application(request, clerk)
            with lock:
                numbers.append(application["applicationNumber"])

        threads = [threading.Thread(target=create) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(numbers) == 10
        assert len(set(numbers)) == 10
        assert sorted(int(n[-6:]) for n in numbers) == list(range(1, 11))

    def test_duplicate_number_is_retried(self, mongo, service, clerk, sample_application_data):
        year = datetime.now(timezone.utc).year
        taken = format_application_number(year, 1)
        mongo.collections["applications"]["x"] = {"id": "x", "applicationNumber": taken}
        request = CreateApplicationRequest.model_validate(sample_application_data)

        # Counter lagging behind the stored records
        with patch.object(mongo, "next_sequence", side_effect=[1, 2]):
            application = service.create_application(request, clerk)

        assert application["applicationNumber"] == format_application_number(year, 2)

    def test_gives_up_after_repeated_collisions(self, mongo, service, clerk, sample_application_data):
        year = datetime.now(timezone.utc).year
        mongo.collections["applications"]["x"] = {
            "id": "x", "applicationNumber": format_application_number(year, 1)
        }
        request = CreateApplicationRequest.model_validate(sample_application_data)

        with patch.object(mongo, "next_sequence", return_value=1):
            with pytest.raises(ConflictException):
                service.create_application(request, clerk)

        assert mongo.count("applications") == 1

    def test_attempt_limit(self, mongo, service, clerk, sample_application_data):
        year = datetime.now(timezone.utc).year
        mongo.collections["applications"]["x"] = {
            "id": "x", "applicationNumber": format_application_number(year, 1)
        }
        request = CreateApplicationRequest.model_validate(sample_application_data)

        with patch.object(mongo, "next_sequence", return_value=1) as next_sequence:
            with pytest.raises(ConflictException):
                service.create_application(request, clerk)

        assert next_sequence.call_count == MAX_NUMBER_ATTEMPTS

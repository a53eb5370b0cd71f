# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Reporting service: dashboard counters, filtered reports, distributions and
exports.
"""

import csv
import io
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pymongo import DESCENDING
from opentelemetry import trace

from ..models.entities import Application, Benefit, Document, HouseholdMember
from ..models.enums import ApplicationStatus, BenefitStatus, BenefitType
from ..models.requests import ApplicationReportQuery, BenefitReportQuery
from .mongodb import MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

APPLICATIONS = "applications"
BENEFITS = "benefits"
DOCUMENTS = "documents"
HOUSEHOLD_MEMBERS = "household_members"
USERS = "users"

TREND_MONTHS = 12

CSV_COLUMNS = [
    "applicationNumber",
    "status",
    "priority",
    "idNumber",
    "firstName",
    "lastName",
    "gender",
    "municipality",
    "ward",
    "householdSize",
    "monthlyIncome",
    "monthlyExpenses",
    "dependents",
    "meansTestScore",
    "meansTestStatus",
    "applicationDate",
    "approvalDate",
    "expiryDate",
]


def month_start(moment: datetime, months_back: int = 0) -> datetime:
    """First instant of the month `months_back` months before `moment`."""
    index = moment.year * 12 + (moment.month - 1) - months_back
    return datetime(index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)


def growth_percentage(current: int, previous: int) -> float:
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def date_range_filter(start: Optional[datetime], end: Optional[datetime]) -> Optional[Dict[str, datetime]]:
    condition = {}
    if start:
        condition["$gte"] = start
    if end:
        condition["$lte"] = end
    return condition or None


class ReportService:
    """Read-only aggregate views over applications and benefits."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service

    def _user_names(self, user_ids) -> Dict[str, Dict[str, Any]]:
        names = {}
        for user_id in {uid for uid in user_ids if uid}:
            user = self.mongo_service.find_by_id(USERS, user_id)
            if user:
                names[user_id] = {"firstName": user.get("firstName"), "lastName": user.get("lastName")}
        return names

    def _sum_active_benefits(self) -> float:
        result = self.mongo_service.aggregate(BENEFITS, [
            {"$match": {"status": BenefitStatus.ACTIVE.value}},
            {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
        ])
        return result[0]["total"] if result else 0

    def dashboard(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Application counts by status and month, and benefit totals."""
        with tracer.start_as_current_span("report.dashboard"):
            now = now or datetime.now(timezone.utc)
            current_month = month_start(now)
            next_month = month_start(now, -1)
            previous_month = month_start(now, 1)

            current_count = self.mongo_service.count(
                APPLICATIONS, {"applicationDate": {"$gte": current_month, "$lt": next_month}}
            )
            previous_count = self.mongo_service.count(
                APPLICATIONS, {"applicationDate": {"$gte": previous_month, "$lt": current_month}}
            )

            return {
                "applications": {
                    "total": self.mongo_service.count(APPLICATIONS),
                    "pending": self.mongo_service.count(APPLICATIONS, {"status": ApplicationStatus.PENDING.value}),
                    "underReview": self.mongo_service.count(
                        APPLICATIONS, {"status": ApplicationStatus.UNDER_REVIEW.value}
                    ),
                    "approved": self.mongo_service.count(APPLICATIONS, {"status": ApplicationStatus.APPROVED.value}),
                    "rejected": self.mongo_service.count(APPLICATIONS, {"status": ApplicationStatus.REJECTED.value}),
                    "currentMonth": current_count,
                    "lastMonth": previous_count,
                    "growth": growth_percentage(current_count, previous_count),
                },
                "benefits": {
                    "total": self.mongo_service.count(BENEFITS),
                    "active": self.mongo_service.count(BENEFITS, {"status": BenefitStatus.ACTIVE.value}),
                    "totalAmount": self._sum_active_benefits(),
                },
            }

    def application_report(self, query: ApplicationReportQuery) -> List[Dict[str, Any]]:
        """Applications in a date range with creator, reviewer and related counts."""
        filters: Dict[str, Any] = {}
        date_filter = date_range_filter(query.start_date, query.end_date)
        if date_filter:
            filters["applicationDate"] = date_filter
        if query.status:
            filters["status"] = ApplicationStatus(query.status).value
        if query.municipality:
            filters["municipality"] = query.municipality

        stored = self.mongo_service.find(APPLICATIONS, filters, sort=[("applicationDate", DESCENDING)])
        applications = [Application(**item) for item in stored]
        names = self._user_names(
            [a.created_by_id for a in applications] + [a.reviewed_by_id for a in applications]
        )

        report = []
        for application in applications:
            row = application.to_public()
            row["createdBy"] = names.get(application.created_by_id)
            row["reviewedBy"] = names.get(application.reviewed_by_id)
            row["_count"] = {
                "documents": self.mongo_service.count(DOCUMENTS, {"applicationId": application.id}),
                "benefits": self.mongo_service.count(BENEFITS, {"applicationId": application.id}),
            }
            report.append(row)
        return report

    def benefit_report(self, query: BenefitReportQuery) -> Dict[str, Any]:
        """Benefits by start date, status and type, with a total amount."""
        filters: Dict[str, Any] = {}
        date_filter = date_range_filter(query.start_date, query.end_date)
        if date_filter:
            filters["startDate"] = date_filter
        if query.status:
            filters["status"] = BenefitStatus(query.status).value
        if query.benefit_type:
            filters["benefitType"] = BenefitType(query.benefit_type).value

        benefits = []
        for stored in self.mongo_service.find(BENEFITS, filters, sort=[("startDate", DESCENDING)]):
            benefit = Benefit(**stored).to_public()
            application = self.mongo_service.find_by_id(APPLICATIONS, benefit["applicationId"])
            benefit["application"] = {
                key: application.get(key)
                for key in ("applicationNumber", "firstName", "lastName", "idNumber")
            } if application else None
            benefits.append(benefit)

        return {
            "benefits": benefits,
            "summary": {
                "total": len(benefits),
                "totalAmount": sum(benefit["amount"] for benefit in benefits),
            },
        }

    def statistics(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Status and benefit-type distributions, and a twelve-month application trend."""
        with tracer.start_as_current_span("report.statistics"):
            now = now or datetime.now(timezone.utc)

            status_rows = self.mongo_service.aggregate(APPLICATIONS, [
                {"$group": {"_id": "$status", "count": {"$sum": 1}}},
                {"$sort": {"_id": 1}},
            ])
            type_rows = self.mongo_service.aggregate(BENEFITS, [
                {"$group": {"_id": "$benefitType", "count": {"$sum": 1}, "amount": {"$sum": "$amount"}}},
                {"$sort": {"_id": 1}},
            ])

            first_month = month_start(now, TREND_MONTHS - 1)
            trend_rows = self.mongo_service.aggregate(APPLICATIONS, [
                {"$match": {"applicationDate": {"$gte": first_month}}},
                {"$group": {
                    "_id": {"year": {"$year": "$applicationDate"}, "month": {"$month": "$applicationDate"}},
                    "count": {"$sum": 1},
                }},
            ])
            counts = {
                f"{row['_id']['year']:04d}-{row['_id']['month']:02d}": row["count"]
                for row in trend_rows
            }

            trend = []
            for months_back in range(TREND_MONTHS - 1, -1, -1):
                key = month_start(now, months_back).strftime("%Y-%m")
                trend.append({"month": key, "count": counts.get(key, 0)})

            return {
                "statusDistribution": [
                    {"status": row["_id"], "count": row["count"]} for row in status_rows
                ],
                "benefitTypeDistribution": [
                    {"benefitType": row["_id"], "count": row["count"], "totalAmount": row["amount"]}
                    for row in type_rows
                ],
                "monthlyTrends": trend,
            }

    def export_applications(self) -> List[Dict[str, Any]]:
        """Every application with its documents, benefits and household members."""
        exported = []
        for stored in self.mongo_service.find(APPLICATIONS, {}, sort=[("applicationNumber", DESCENDING)]):
            application = Application(**stored).to_public()
            related = {"applicationId": application["id"]}
            application["documents"] = [
                Document(**d).to_public() for d in self.mongo_service.find(DOCUMENTS, related)
            ]
            application["benefits"] = [
                Benefit(**b).to_public() for b in self.mongo_service.find(BENEFITS, related)
            ]
            application["householdMembers"] = [
                HouseholdMember(**m).to_public() for m in self.mongo_service.find(HOUSEHOLD_MEMBERS, related)
            ]
            exported.append(application)

        logger.info("Applications exported", extra={"count": len(exported)})
        return exported

    @staticmethod
    def to_csv(applications: List[Dict[str, Any]]) -> str:
        """Flat CSV of application fields; nested records are omitted."""
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        for application in applications:
            writer.writerow({column: application.get(column) for column in CSV_COLUMNS})
        return buffer.getvalue()

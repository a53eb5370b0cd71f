# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Builds resource and collection responses with conditional affordance links
and RFC 7807 problem documents.
"""

import math
from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode

from ..domain.authorization import check_role, can_modify_application
from ..models.entities import UserContext
from ..models.enums import ApplicationStatus
from ..models.responses import HalLink

PROBLEM_BASE_URI = "https://api.relief360.org/problems/"


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_action_link(
        self,
        resource_path: str,
        action: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build action link for a resource."""
        return self.build_link(
            f"{resource_path}/{action}",
            method=method,
            content_type="application/json",
            title=title or action.title()
        )


class HalFormatter:
    """HAL formatter with affordances driven by the caller's role."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    @staticmethod
    def _dump_links(links: Dict[str, HalLink]) -> Dict[str, Dict[str, Any]]:
        return {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}

    def format_resource(
        self,
        data: Dict[str, Any],
        resource_path: str,
        collection_path: Optional[str] = None,
        extra_links: Optional[Dict[str, HalLink]] = None
    ) -> Dict[str, Any]:
        """Attach self, collection and extra links to a resource."""
        links = {'self': self.link_builder.build_link(resource_path, title="Self")}
        if collection_path:
            links['collection'] = self.link_builder.build_link(collection_path, title="Collection")
        if extra_links:
            links.update(extra_links)

        response = dict(data)
        response['_links'] = self._dump_links(links)
        return response

    def format_collection(
        self,
        items: List[Dict[str, Any]],
        total: int,
        page: int,
        page_size: int,
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with pagination links."""
        total_pages = math.ceil(total / page_size) if page_size > 0 else 1
        params = {k: v for k, v in (query_params or {}).items() if v is not None}

        def page_link(number: int, title: str) -> HalLink:
            query = urlencode({**params, 'page': number, 'limit': page_size})
            return self.link_builder.build_link(f"{collection_path}?{query}", title=title)

        links = {'self': page_link(page, "Current page")}
        if page > 1:
            links['first'] = page_link(1, "First page")
            links['prev'] = page_link(page - 1, "Previous page")
        if page < total_pages:
            links['next'] = page_link(page + 1, "Next page")
            links['last'] = page_link(total_pages, "Last page")

        return {
            'total': total,
            'page': page,
            'limit': page_size,
            'totalPages': total_pages,
            '_links': self._dump_links(links),
            '_embedded': {
                'items': items
            }
        }

    def format_application(self, application: Dict[str, Any], user_context: UserContext) -> Dict[str, Any]:
        """
        Format an application with workflow affordances.

        Action links appear only when the caller's role allows the action
        and the application is in a status where it applies.
        """
        base_path = f"/api/applications/{application['id']}"
        status = ApplicationStatus(application['status'])
        links = {
            'documents': self.link_builder.build_link(
                f"/api/documents?applicationId={application['id']}", title="Documents"
            ),
            'householdMembers': self.link_builder.build_link(
                f"{base_path}/household-members", title="Household members"
            ),
        }

        if status == ApplicationStatus.PENDING and check_role(user_context, "applications:submit").allowed:
            links['submit'] = self.link_builder.build_action_link(base_path, "submit", title="Submit for review")

        if status == ApplicationStatus.UNDER_REVIEW and check_role(user_context, "applications:review").allowed:
            links['review'] = self.link_builder.build_action_link(base_path, "review", title="Review application")

        if check_role(user_context, "applications:means_test").allowed:
            links['meansTest'] = self.link_builder.build_action_link(base_path, "means-test", title="Run means test")

        if (
            check_role(user_context, "applications:update").allowed
            and can_modify_application(user_context, status).allowed
        ):
            links['edit'] = self.link_builder.build_link(
                base_path, method="PUT", content_type="application/json", title="Edit application"
            )

        if check_role(user_context, "applications:delete").allowed:
            links['delete'] = self.link_builder.build_link(base_path, method="DELETE", title="Delete application")

        return self.format_resource(application, base_path, "/api/applications", links)

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URI}{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {}
        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link("/openapi/openapi.json", title="API schema")
        elif error_type == "authentication-required":
            links['login'] = self.link_builder.build_link(
                "/api/auth/login",
                method="POST",
                content_type="application/json",
                title="Login"
            )

        if links:
            error_response['_links'] = self._dump_links(links)
        return error_response

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: List[Dict[str, Any]],
        status: int = 422
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.build_error_response(
            "validation-error",
            "Validation Error",
            status,
            detail,
            instance,
            validation_errors
        )

    def format_server_error(self, detail: str, instance: str, status: int = 500) -> Dict[str, Any]:
        """Format a server error response."""
        return self.build_error_response(
            "internal-server-error",
            "Internal Server Error",
            status,
            detail,
            instance
        )


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)

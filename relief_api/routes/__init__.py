# SPDX-License-Identifier: Apache-2.0

"""
HTTP route blueprints for the Relief360 API.

Each module exposes one flask-openapi3 APIBlueprint; views stay thin and
delegate to the services attached to the application.
"""

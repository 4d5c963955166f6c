"""Test discovery: workspace scanning, find-tests protocol and tree resolution."""

from explorer.discovery.protocol import FindTestsParams, Position, SuiteDescriptor, parse_find_tests_response
from explorer.discovery.resolver import DiscoveryResolver, build_suite_nodes
from explorer.discovery.service import CommandDiscoveryService, DiscoveryError, DiscoveryService
from explorer.discovery.workspace import find_manifests, find_test_projects

__all__ = [
    "CommandDiscoveryService",
    "DiscoveryError",
    "DiscoveryResolver",
    "DiscoveryService",
    "FindTestsParams",
    "Position",
    "SuiteDescriptor",
    "build_suite_nodes",
    "find_manifests",
    "find_test_projects",
    "parse_find_tests_response",
]

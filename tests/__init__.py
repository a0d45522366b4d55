"""
Test suite for photostore.

This module contains all test cases for the application:
- Unit tests for models, services, the HTTP API and operator tasks
- Integration tests for the complete photo lifecycle
"""

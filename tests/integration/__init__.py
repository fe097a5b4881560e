"""
Integration tests for the contact intake endpoint.

These tests run the Lambda handler against mocked AWS services to test
the complete flow from multipart body to stored images and sent email.
"""

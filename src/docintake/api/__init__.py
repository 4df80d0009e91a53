"""HTTP API for validation triggers and request status"""

"""Validation stages, pipeline and manual trigger service"""

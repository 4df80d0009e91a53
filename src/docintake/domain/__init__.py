"""Domain logic for document intake"""

"""Infrastructure adapters for docintake ports"""

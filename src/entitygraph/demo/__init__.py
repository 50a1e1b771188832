"""
Demo organization domain: org units and persons
"""

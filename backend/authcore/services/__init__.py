"""Service layer for AuthCore"""

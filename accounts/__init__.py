"""accounts/ -- Account lifecycle orchestration for students and investors.

Layer rule: accounts/ may import from auth/, mail/, and core/. It does NOT
import from api/; routes call into accounts/, not the other way around.
"""

"""Storefront backend"""

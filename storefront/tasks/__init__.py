"""Background tasks"""

"""Utility functions for upload file validation and student id seeding"""
import re

PDF_CONTENT_TYPE = "application/pdf"


def is_supported_type(content_type: str) -> bool:
    """
    Accept PDFs and any image type

    Returns: True for 'application/pdf' or 'image/*'
    """
    content_type = (content_type or "").lower()
    return content_type == PDF_CONTENT_TYPE or content_type.startswith("image/")


def default_student_id(filename: str) -> str:
    """
    Seed a student id from a file name by dropping its extension

    'alice_p1.pdf' -> 'alice_p1', 'scan.2024.png' -> 'scan.2024',
    names without an extension are returned unchanged
    """
    return re.sub(r'\.[^/.]+$', '', filename)

"""PDF 底层操作（PyMuPDF）。"""

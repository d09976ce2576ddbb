"""
Content-management backend package.

Serves bilingual (English/Spanish) site content (banners, menus, blog
posts, FAQs, footer, settings, informational pages and media) from a
FastAPI application over a pluggable document store.
"""

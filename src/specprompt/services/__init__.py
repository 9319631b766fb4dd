"""Services: fragment resolution, templates, requests and refinement."""

"""Document transforms: frontmatter codec, HTML conversion, path helpers."""

"""Page preflight: custom HTML rules, link checks and Lighthouse SEO audits."""

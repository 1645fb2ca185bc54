"""
Services the job engine talks to.

- api_client: DataHive job API (poll, complete, error, configuration, ping)
- config_manager: effective runtime configuration with server overrides
- browser: process-wide headless browser with scoped pages
"""

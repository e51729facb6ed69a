"""Tests for ShareSettings defaults, validation, and env loading."""

from __future__ import annotations

from datetime import timedelta

from fileshare.settings import ShareSettings


class TestDefaults:

    def test_local_defaults_validate(self):
        settings = ShareSettings()
        assert settings.is_local
        assert settings.validate() == []
        assert settings.compression_floor_bytes == 100 * 1024
        assert settings.share_retention == timedelta(days=30)


class TestValidate:

    def test_non_local_requires_supabase_and_secret(self):
        errors = ShareSettings(environment='production').validate()
        assert any('supabase_url' in e for e in errors)
        assert any('supabase_service_role_key' in e for e in errors)
        assert any('jwt_secret' in e for e in errors)

    def test_short_secret_rejected(self):
        settings = ShareSettings(
            environment='staging',
            supabase_url='https://x.supabase.co',
            supabase_service_role_key='key',
            jwt_secret='short',
        )
        assert settings.validate() == ['staging: jwt_secret must be >= 32 characters']

    def test_token_entropy_floor(self):
        errors = ShareSettings(link_token_bytes=8).validate()
        assert errors == ['link_token_bytes must be >= 16 (128 bits)']

    def test_compression_bounds(self):
        errors = ShareSettings(
            image_quality=0, png_compress_level=12, archive_threshold=1.5,
        ).validate()
        assert len(errors) == 3


class TestFromEnv:

    def test_reads_environment(self):
        settings = ShareSettings.from_env({
            'ENVIRONMENT': 'dev',
            'SUPABASE_URL': 'https://x.supabase.co',
            'SUPABASE_SERVICE_ROLE_KEY': 'service-key',
            'JWT_SECRET': 's' * 32,
            'FRONTEND_URL': 'https://files.example.com/',
            'ARCHIVE_NON_IMAGES': 'yes',
            'SHARE_RETENTION_DAYS': '7',
            'SWEEP_INTERVAL_SECONDS': '60',
        })
        assert settings.environment == 'dev'
        assert settings.public_url == 'https://files.example.com'
        assert settings.archive_non_images is True
        assert settings.share_retention == timedelta(days=7)
        assert settings.sweep_interval_seconds == 60.0
        assert settings.validate() == []

    def test_empty_env_is_local_defaults(self):
        assert ShareSettings.from_env({}) == ShareSettings()


class TestUploadLimits:

    def test_defaults(self):
        settings = ShareSettings()
        assert settings.max_file_size == 50 * 1024 * 1024
        assert '.pdf' in settings.allowed_file_types
        assert '.exe' not in settings.allowed_file_types

    def test_from_env(self):
        settings = ShareSettings.from_env({
            'MAX_FILE_SIZE': '1048576',
            'ALLOWED_FILE_TYPES': '.PDF, .png,,.txt ',
        })
        assert settings.max_file_size == 1024 * 1024
        assert settings.allowed_file_types == ('.pdf', '.png', '.txt')

    def test_invalid_limits(self):
        errors = ShareSettings(max_file_size=0, allowed_file_types=('pdf',)).validate()
        assert errors == [
            'max_file_size must be >= 1',
            "allowed_file_types entries must start with '.'",
        ]

    def test_empty_allow_list_rejected(self):
        errors = ShareSettings(allowed_file_types=()).validate()
        assert errors == ['allowed_file_types must not be empty']

import pytest

from facecrop.config import (
    AbsoluteCrop,
    ConfigError,
    FaceCropConfig,
    RelativeCrop,
    build_crop_params,
    build_post_process_params,
    load_config,
    validate_config,
)


def test_defaults_are_valid() -> None:
    validate_config(FaceCropConfig())


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"top_padding": -0.1}, "Top padding"),
        ({"top_padding": 1.5}, "Top padding"),
        ({"aspect_ratio": 0.0}, "Aspect ratio"),
        ({"aspect_ratio": float("nan")}, "Aspect ratio"),
        ({"aspect_ratio": float("inf")}, "Aspect ratio"),
        ({"top_padding": float("nan")}, "Top padding"),
        ({"proportion_of_face": float("nan")}, "Proportion of face"),
        ({"proportion_of_face": 0.0}, "Proportion of face"),
        ({"proportion_of_face": 1.2}, "Proportion of face"),
        ({"strategy": "diagonal"}, "Strategy"),
        ({"on_error": "retry"}, "On-error"),
        ({"strategy": "absolute", "height": 0}, "Height and width"),
        ({"resize": True, "width": -5}, "Height and width"),
        ({"jpeg_quality": 0}, "JPEG quality"),
        ({"jpeg_quality": 101}, "JPEG quality"),
    ],
)
def test_invalid_config(overrides: dict, message: str) -> None:
    with pytest.raises(ConfigError, match=message):
        validate_config(FaceCropConfig(**overrides))


def test_absolute_ignores_ratio_settings() -> None:
    config = FaceCropConfig(strategy="absolute", aspect_ratio=-1.0, proportion_of_face=0.0)
    params = build_crop_params(config)
    assert params.kind == AbsoluteCrop(height=1024, width=1024)


def test_build_relative_params() -> None:
    params = build_crop_params(FaceCropConfig(aspect_ratio=0.75, proportion_of_face=0.4, top_padding=0.2))
    assert params.top_padding == 0.2
    assert params.kind == RelativeCrop(aspect_ratio=0.75, proportion_of_face=0.4)


def test_build_post_process_params() -> None:
    params = build_post_process_params(FaceCropConfig(resize=True, height=256, width=128))
    assert params.resize
    assert not params.filter_by_size
    assert (params.height, params.width) == (256, 128)


def test_load_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FACECROP_STRATEGY", "absolute")
    monkeypatch.setenv("FACECROP_HEIGHT", "300")
    monkeypatch.setenv("FACECROP_RESIZE", "1")
    monkeypatch.setenv("FACECROP_ON_ERROR", "skip")
    monkeypatch.setenv("ALLOW_CPU_FALLBACK", "1")
    config = load_config()
    assert config.strategy == "absolute"
    assert config.height == 300
    assert config.width == 1024
    assert config.resize
    assert not config.filter_by_size
    assert config.on_error == "skip"
    assert config.allow_cpu_fallback


def test_jpeg_quality_accepts_full_pillow_range() -> None:
    validate_config(FaceCropConfig(jpeg_quality=100))
    validate_config(FaceCropConfig(jpeg_quality=1))


@pytest.mark.parametrize(
    "name,value",
    [("FACECROP_HEIGHT", "abc"), ("FACECROP_ASPECT_RATIO", "wide"), ("JPEG_QUALITY", "9.5")],
)
def test_load_config_rejects_malformed_env(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError, match=name):
        load_config()

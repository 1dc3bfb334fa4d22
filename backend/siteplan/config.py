from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Parameter lookup
    default_location: str = "Delhi"
    default_building_type: str = "Residential"
    default_height_category: str = "Mid-Rise (15-45m)"

    # Geometry
    grid_size: float = 1e-6  # snapping tolerance for boolean ops, working units
    mask_padding_m: float = 100.0
    inter_building_gap_m: float = 2.0
    min_footprint_sqm: float = 20.0

    # Floors / heights
    floor_height_heuristic_m: float = 3.5
    height_clamp_mode: Literal["configured", "heuristic"] = "configured"

    # Site zones
    parking_width_m: float = 5.0
    road_width_m: float = 6.0
    parking_space_sqm: float = 12.5  # 2.5 m x 5 m stall
    parking_efficiency: float = 0.75

    # Estimation
    project_contingency_rate: float = 0.05

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "SITEPLAN_",
    }


settings = Settings()

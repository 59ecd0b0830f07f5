from __future__ import annotations


DEFAULT_CONFIG: dict = {
    "models": {
        "detector": {
            "path": "models/fish_detector_v1.tflite",
            "backend": "auto",
            "input_size": 320,
            "input_scale": "raw_0_255",
            "labels_path": None,
            "output_order": [],
            "num_threads": None,
        },
        "classifier": {
            "path": "models/fishnet_final_v4.tflite",
            "backend": "auto",
            "input_size": 224,
            "input_scale": "unit_0_1",
            "labels_path": None,
            "output_order": [],
            "num_threads": None,
        },
        "species": {
            "path": "models/fish_species_model.tflite",
            "backend": "auto",
            "input_size": 224,
            "input_scale": "unit_0_1",
            "labels_path": None,
            "output_order": [],
            "num_threads": None,
        },
        "disease": {
            "path": "models/fish_disease_model.tflite",
            "backend": "auto",
            "input_size": 224,
            "input_scale": "unit_0_1",
            "labels_path": None,
            "output_order": [],
            "num_threads": None,
        },
        "load_workers": 3,
    },
    "detector": {
        "score_threshold": 0.25,
        "num_classes": 7,
        "num_anchors": 2100,
        "normalized_cutoff": 1.5,
        "max_detection_count": 50,
        "default_box": [0.1, 0.1, 0.9, 0.9],
    },
    "classifier": {
        "mode": "split",
        "crop_size": 224,
        "freshness_threshold": 0.5,
        "default_freshness_score": 0.95,
        "default_freshness_label": "Fresh",
    },
    "arbiter": {
        "background_label": "wild_fish_background",
        "background_override_threshold": 0.05,
        "strict_background_rescue": False,
        "rescue_labels": ["crab", "prawn"],
        "rescue_min_score": 0.02,
        "confusable_labels": ["sea_bass"],
        "confusable_max_score": 0.50,
        "confusable_alternatives": ["catla", "rohu"],
        "confusable_min_alternative_score": 0.05,
        "healthy_label": "healthy",
        "class_a_label": "black_gill_disease",
        "class_a_threshold": 0.40,
        "class_b_label": "white_spot_virus",
        "class_b_threshold": 0.30,
        "disease_display_names": {
            "black_gill_disease": "Black Gill Risk",
            "healthy": "Healthy",
            "white_spot_virus": "White Spot Risk",
        },
        "calibration": {
            "enabled": True,
            "low_floor": 0.80,
            "low_band": [0.82, 0.90],
            "high_ceiling": 0.98,
            "high_band": [0.94, 0.97],
        },
    },
    "fallback": {
        "species_name": "rohu",
        "species_confidence": 94.5,
        "freshness_score": 0.92,
        "freshness_label": "Fresh",
        "disease_name": "Healthy",
        "disease_confidence": 98.0,
        "box": [0.15, 0.15, 0.85, 0.85],
    },
    "output": {
        "event_stdout": True,
        "event_file": None,
        "annotate_dir": None,
    },
    "monitoring": {
        "json_logs": False,
        "log_level": "INFO",
        "stats_interval_seconds": 5.0,
        "prometheus_enabled": False,
        "prometheus_host": "0.0.0.0",
        "prometheus_port": 9109,
    },
    "seed": None,
}

"""Standard morning, midday and evening routines for a new organization."""

from __future__ import annotations

from typing import List

from .contracts import RoutineTemplate

_NOTES_STEP = {
    "name": "Läs notiser",
    "description": "Kontrollera eventuella uppdateringar",
    "category": "preparation",
    "icon": "clipboard",
    "horseContext": "none",
    "estimatedMinutes": 5,
}

STANDARD_ROUTINE_TEMPLATES: List[dict] = [
    {
        "name": "Morgonpass",
        "description": "Standard morgonrutin för stallet",
        "type": "morning",
        "icon": "sun",
        "color": "#FFA500",
        "defaultStartTime": "06:30",
        "estimatedDuration": 90,
        "pointsValue": 3,
        "steps": [
            {
                **_NOTES_STEP,
                "name": "Läs dagens notiser",
                "description": "Kontrollera dagens anteckningar och varningar",
            },
            {
                "name": "Morgonfodring",
                "description": "Ge morgonfoder och tillskott till alla hästar",
                "category": "feeding",
                "icon": "utensils",
                "horseContext": "all",
                "showFeeding": True,
                "showMedication": True,
                "showSpecialInstructions": True,
                "allowPartialCompletion": True,
                "allowPhotoEvidence": True,
                "estimatedMinutes": 30,
            },
            {
                "name": "Täckehantering",
                "description": "Ta av/på täcken efter dagens väder",
                "category": "blanket",
                "icon": "coat",
                "horseContext": "all",
                "showBlanketStatus": True,
                "allowPartialCompletion": True,
                "estimatedMinutes": 20,
            },
            {
                "name": "Utsläpp",
                "description": "Släpp ut hästarna i sina hagar",
                "category": "turnout",
                "icon": "gate",
                "horseContext": "all",
                "showSpecialInstructions": True,
                "allowPartialCompletion": True,
                "estimatedMinutes": 25,
            },
            {
                "name": "Vattencheck",
                "description": "Kontrollera vatten i boxar och hinkar",
                "category": "water",
                "icon": "droplet",
                "horseContext": "none",
                "estimatedMinutes": 10,
            },
        ],
    },
    {
        "name": "Dagpass",
        "description": "Lunchrutin med mockning",
        "type": "midday",
        "icon": "clock",
        "color": "#4CAF50",
        "defaultStartTime": "11:00",
        "estimatedDuration": 120,
        "pointsValue": 4,
        "steps": [
            _NOTES_STEP,
            {
                "name": "Mockning",
                "description": "Mocka alla boxar",
                "category": "mucking",
                "icon": "broom",
                "horseContext": "all",
                "allowPartialCompletion": True,
                "allowPhotoEvidence": True,
                "estimatedMinutes": 90,
            },
            {
                "name": "Lunchfodring",
                "description": "Ge lunchtillägg om tillämpligt",
                "category": "feeding",
                "icon": "utensils",
                "horseContext": "all",
                "showFeeding": True,
                "showMedication": True,
                "allowPartialCompletion": True,
                "estimatedMinutes": 15,
            },
            {
                "name": "Vattencheck i hagar",
                "description": "Kontrollera vatten i alla hagar",
                "category": "water",
                "icon": "droplet",
                "horseContext": "none",
                "estimatedMinutes": 10,
            },
        ],
    },
    {
        "name": "Kvällspass",
        "description": "Standard kvällsrutin för stallet",
        "type": "evening",
        "icon": "moon",
        "color": "#3F51B5",
        "defaultStartTime": "16:30",
        "estimatedDuration": 90,
        "pointsValue": 3,
        "steps": [
            _NOTES_STEP,
            {
                "name": "Insläpp",
                "description": "Hämta in alla hästar från hagen",
                "category": "bring_in",
                "icon": "home",
                "horseContext": "all",
                "showSpecialInstructions": True,
                "allowPartialCompletion": True,
                "estimatedMinutes": 25,
            },
            {
                "name": "Kvällsfodring",
                "description": "Ge kvällsfoder, hö och mediciner",
                "category": "feeding",
                "icon": "utensils",
                "horseContext": "all",
                "showFeeding": True,
                "showMedication": True,
                "showSpecialInstructions": True,
                "allowPartialCompletion": True,
                "allowPhotoEvidence": True,
                "estimatedMinutes": 35,
            },
            {
                "name": "Täcke på",
                "description": "Lägg på nattäcken på de hästar som behöver",
                "category": "blanket",
                "icon": "coat",
                "horseContext": "all",
                "showBlanketStatus": True,
                "allowPartialCompletion": True,
                "estimatedMinutes": 15,
            },
            {
                "name": "Säkerhetskontroll",
                "description": "Kontrollera dörrar, vatten, belysning",
                "category": "safety",
                "icon": "shield",
                "horseContext": "none",
                "estimatedMinutes": 10,
            },
        ],
    },
]


def standard_templates(organization_id: str) -> List[RoutineTemplate]:
    """Build the standard templates for ``organization_id``.

    Template ids are ``<organization_id>-<type>``; step ids are ``step-<order>``.
    """
    templates = []
    for definition in STANDARD_ROUTINE_TEMPLATES:
        steps = [
            {**step, "id": f"step-{order}", "order": order}
            for order, step in enumerate(definition["steps"], start=1)
        ]
        templates.append(
            RoutineTemplate.model_validate(
                {
                    **definition,
                    "id": f"{organization_id}-{definition['type']}",
                    "organizationId": organization_id,
                    "steps": steps,
                }
            )
        )
    return templates

from collections import Counter
from typing import Any, Dict, List, Optional

from .constants import MAX_COVERAGE_GAPS

TAGS_BY_DISCIPLINE: Dict[str, List[str]] = {
    "Technical Art": [
        "#Nanite", "#LODs", "#MeshOptimization", "#Polycount", "#AssetPipeline",
        "#DCCIntegration", "#Profiling", "#DrawCalls", "#MemoryBudget", "#UnrealInsights",
        "#GPU", "#CPU", "#BatchingInstancing", "#Streaming", "#TextureOptimization",
    ],
    "Lighting & Rendering": [
        "#Lumen", "#LumenGI", "#LumenReflections", "#RayTracing", "#VirtualShadowMaps",
        "#PostProcess", "#GlobalIllumination", "#TSR", "#AntiAliasing", "#Exposure",
        "#VolumetricFog", "#ScreenSpaceEffects", "#ColorGrading", "#PathTracing", "#LightBaking",
    ],
    "Look Development (Materials)": [
        "#Materials", "#MaterialEditor", "#Substrate", "#Shaders", "#Textures",
        "#UVs", "#MaterialInstances", "#MaterialFunctions", "#Decals", "#PBR",
        "#MaterialLayers", "#WorldPositionOffset", "#Tessellation", "#VirtualTextures", "#Transparency",
    ],
    "Animation & Rigging": [
        "#ControlRig", "#AnimationBlueprint", "#StateMachines", "#IK", "#Retargeting",
        "#MetaHumans", "#Sequencer", "#MotionMatching", "#RootMotion", "#AnimLayers",
        "#Skinning", "#BlendSpaces", "#Montages", "#AnimNotifies", "#FullBodyIK",
    ],
    "VFX (Niagara)": [
        "#Niagara", "#NiagaraSystems", "#NiagaraModules", "#ParticleSimulation", "#Fluids",
        "#Groom", "#ClothSimulation", "#ChaosPhysics", "#GPUParticles", "#DataInterfaces",
        "#RibbonRendering", "#MeshParticles", "#ScratchPad", "#EventHandlers", "#AttributeReader",
    ],
    "World Building & Level Design": [
        "#WorldPartition", "#PCG", "#Landscape", "#Foliage", "#Water",
        "#DataLayers", "#LevelStreaming", "#HLOD", "#LargeWorldCoordinates", "#Terrain",
        "#SplineMeshes", "#LevelInstances", "#WorldComposition", "#GeometryCollection", "#NavMesh",
    ],
    "Blueprints": [
        "#Blueprint", "#EventGraph", "#ConstructionScript", "#Functions", "#Macros",
        "#Variables", "#EventDispatchers", "#Interfaces", "#ActorCommunication", "#Debugging",
        "#FlowControl", "#AsyncNodes", "#LatentActions", "#BlueprintNativization", "#Casting",
    ],
    "Game Logic & Systems": [
        "#GameplayAbilitySystem", "#GameMode", "#GameState", "#PlayerController", "#Character",
        "#EnhancedInput", "#SaveSystem", "#AIController", "#BehaviorTrees", "#EQS",
        "#Subsystems", "#DataAssets", "#GameFeatures", "#SmartObjects", "#StateTree",
    ],
    "C++ Programming": [
        "#Cpp", "#UObject", "#AActor", "#GarbageCollection", "#Modules",
        "#Plugins", "#Reflection", "#Delegates", "#Multithreading", "#Slate",
        "#EditorExtensions", "#PropertySystem", "#UFUNCTION", "#UPROPERTY", "#BlueprintExposure",
    ],
    "Networking": [
        "#Replication", "#RPCs", "#NetRelevancy", "#BandwidthOptimization", "#DedicatedServer",
        "#ReplicationGraph", "#Ownership", "#Prediction", "#Rollback", "#SessionManagement",
        "#OnlineSubsystems", "#NetSerialize", "#NetConditions", "#PushModel", "#IrisReplication",
    ],
}

TAG_ALIASES: Dict[str, str] = {
    "#VSM": "#VirtualShadowMaps",
    "#GAS": "#GameplayAbilitySystem",
    "#ABP": "#AnimationBlueprint",
    "#BP": "#Blueprint",
    "#CPP": "#Cpp",
    "#RT": "#RayTracing",
    "#GI": "#GlobalIllumination",
    "#LWC": "#LargeWorldCoordinates",
    "#WPO": "#WorldPositionOffset",
    "#VT": "#VirtualTextures",
    "#OFPA": "#WorldPartition",
    "#EIS": "#EnhancedInput",
    "#BT": "#BehaviorTrees",
    "#VirtualizedGeometry": "#Nanite",
    "#NaniteVirtualGeometry": "#Nanite",
    "#TemporalSuperResolution": "#TSR",
    "#GlobalIllum": "#GlobalIllumination",
    "#AnimBlueprint": "#AnimationBlueprint",
    "#AnimBP": "#AnimationBlueprint",
    "#MatEditor": "#MaterialEditor",
    "#MatFunctions": "#MaterialFunctions",
    "#ParticleSystems": "#Niagara",
    "#Particles": "#Niagara",
    "#ChaosDestruction": "#ChaosPhysics",
    "#Chaos": "#ChaosPhysics",
    "#ProceduralGeneration": "#PCG",
    "#ProceduralContentGeneration": "#PCG",
    "#VisualScripting": "#Blueprint",
    "#Abilities": "#GameplayAbilitySystem",
    "#Input": "#EnhancedInput",
    "#InputSystem": "#EnhancedInput",
    "#Navigation": "#NavMesh",
    "#AINav": "#NavMesh",
    "#Skeletal": "#Skinning",
    "#SkeletalMesh": "#Skinning",
    "#Metahuman": "#MetaHumans",
    "#MetaHuman": "#MetaHumans",
    "#Cinematics": "#Sequencer",
    "#MovieScene": "#Sequencer",
}


def normalize_tag(tag: str) -> str:
    tag = (tag or "").strip()
    normalized = tag if tag.startswith("#") else f"#{tag}"
    return TAG_ALIASES.get(normalized, normalized)


def get_all_tags() -> List[str]:
    seen: List[str] = []
    for tags in TAGS_BY_DISCIPLINE.values():
        for tag in tags:
            if tag not in seen:
                seen.append(tag)
    return seen


def validate_tags(tags: List[str], discipline: str) -> Dict[str, List[str]]:
    """Split tags into known and unknown; tags from other disciplines are still valid."""
    allowed = TAGS_BY_DISCIPLINE.get(discipline, [])
    everywhere = set(get_all_tags())
    result: Dict[str, List[str]] = {"valid": [], "invalid": [], "normalized": []}
    for tag in tags or []:
        normalized = normalize_tag(tag)
        result["normalized"].append(normalized)
        if normalized in allowed or normalized in everywhere:
            result["valid"].append(normalized)
        else:
            result["invalid"].append(normalized)
    return result


def get_merged_tags(discipline: str, custom_tags: Optional[Dict[str, List[str]]] = None) -> List[str]:
    merged = list(TAGS_BY_DISCIPLINE.get(discipline, []))
    for tag in (custom_tags or {}).get(discipline, []):
        normalized = normalize_tag(tag)
        if normalized not in merged:
            merged.append(normalized)
    return merged


def compute_coverage_gaps(
    history: List[Dict[str, Any]],
    discipline: str,
    tags: Optional[List[str]] = None,
    limit: int = MAX_COVERAGE_GAPS,
) -> List[str]:
    """Tags of a discipline ordered from least to most covered by stored questions."""
    candidates = [normalize_tag(t) for t in tags] if tags else TAGS_BY_DISCIPLINE.get(discipline, [])
    if not candidates:
        return []

    counts: Counter = Counter()
    for q in history or []:
        if q.get("discipline") != discipline or q.get("status") == "rejected":
            continue
        for tag in q.get("tags") or []:
            counts[normalize_tag(tag)] += 1

    order = {tag: index for index, tag in enumerate(candidates)}
    ranked = sorted(dict.fromkeys(candidates), key=lambda t: (counts[t], order[t]))
    return ranked[:limit]

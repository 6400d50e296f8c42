# bake_terrain.py

"""
================================================================================
OFFLINE TERRAIN BAKER SCRIPT
================================================================================
This script is a command-line tool for pre-generating a grid of terrain
chunks to disk ("baking"). Each chunk is written as a compressed mesh archive
(.npz) plus a PNG texture, and a manifest.json indexes the whole grid so a
consumer can load the chunks instead of generating them.

Usage:
    python bake_terrain.py --config path/to/your/config.json [--output dir]
================================================================================
"""
import os
import sys
import json
import logging
import argparse
import time
import hashlib
import collections
from tqdm import tqdm

from meshgen import ChunkGenerator, MeshgenError, TextureGenerator, save_chunk_npz, save_texture_png
from meshgen import config as DEFAULTS


def chunk_offset(cx: int, cz: int, side_len: int) -> tuple:
    """World-space offset of chunk (cx, cz); neighbours share their border vertices."""
    return (float(cx * side_len), 0.0, float(cz * side_len))


def bake_terrain(config_path: str, output_dir: str = None) -> int:
    """
    Loads a configuration, generates every chunk of the grid and saves its mesh,
    texture and the manifest. Returns a process exit code.
    """
    # 1. --- Setup Logging ---
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )
    logger = logging.getLogger("Baker")

    # 2. --- Load Configuration ---
    logger.info(f"Loading configuration from: {config_path}")
    try:
        with open(config_path, 'r') as f:
            config = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.critical(f"Failed to load or parse config file: {e}")
        return 1

    terrain_params = config.get('terrain_generation_parameters', {})
    seed = terrain_params.get('seed', DEFAULTS.DEFAULT_SEED)
    chunks_x = terrain_params.get('chunks_x', DEFAULTS.DEFAULT_CHUNKS_X)
    chunks_z = terrain_params.get('chunks_z', DEFAULTS.DEFAULT_CHUNKS_Z)
    base_output_dir = output_dir or os.path.join(DEFAULTS.DEFAULT_OUTPUT_DIR, f"seed_{seed}")

    # 3. --- Initialize the Generators ---
    logger.info(f"Initializing generators with seed: {seed}")
    try:
        chunk_gen = ChunkGenerator.from_settings(terrain_params, logger=logger)
        texture_gen = TextureGenerator.from_settings(terrain_params, logger=logger)
    except MeshgenError as e:
        logger.critical(f"Invalid terrain parameters: {e}")
        return 1

    # Pixel rows advance against the texture height, so only square textures map onto a chunk.
    if texture_gen.width != texture_gen.height:
        logger.critical(
            f"Baked textures must be square, got {texture_gen.width}x{texture_gen.height}"
        )
        return 1

    side_len = chunk_gen.side_len
    # Texture pixels per world unit on both axes, so each texture covers exactly its chunk.
    texture_scale = texture_gen.width / side_len if side_len else 1.0

    mesh_dir = os.path.join(base_output_dir, "meshes")
    texture_dir = os.path.join(base_output_dir, "textures")
    vertices, quads, colors = chunk_gen.allocate_buffers()
    pixels = texture_gen.allocate_buffer()

    # 4. --- Main Baking Loop ---
    total_chunks = chunks_x * chunks_z
    logger.info(f"Starting bake for a {chunks_x}x{chunks_z} grid ({total_chunks} chunks)...")

    manifest_chunks = [[None] * chunks_x for _ in range(chunks_z)]
    saved_hashes = set()
    compression_stats = collections.Counter()
    start_time = time.perf_counter()

    tasks = [(cx, cz) for cz in range(chunks_z) for cx in range(chunks_x)]
    try:
        for cx, cz in tqdm(tasks, total=total_chunks, desc="Baking Chunks"):
            offset = chunk_offset(cx, cz, side_len)
            chunk_gen.fill(offset, vertices, quads, colors)
            mesh_name = f"chunk_{cx}_{cz}.npz"
            save_chunk_npz(os.path.join(mesh_dir, mesh_name), vertices, quads, colors)

            texture_gen.fill((offset[0] * texture_scale, offset[2] * texture_scale), pixels, scale=texture_scale)
            file_hash = hashlib.md5(pixels.tobytes()).hexdigest()
            if file_hash not in saved_hashes:
                saved_hashes.add(file_hash)
                tier = save_texture_png(pixels, texture_gen.width, texture_gen.height,
                                        os.path.join(texture_dir, f"{file_hash}.png"))
                compression_stats[tier] += 1

            manifest_chunks[cz][cx] = {'mesh': mesh_name, 'texture': f"{file_hash}.png", 'offset': list(offset)}
    except MeshgenError as e:
        logger.critical(f"Baking aborted: {e}")
        return 1

    # --- Finalization ---
    manifest = {
        'seed': seed,
        'side_len': side_len,
        'height': chunk_gen.height,
        'texture_size': [texture_gen.width, texture_gen.height],
        'chunks_x': chunks_x,
        'chunks_z': chunks_z,
        'chunks': manifest_chunks,
    }
    manifest_path = os.path.join(base_output_dir, "manifest.json")
    with open(manifest_path, 'w') as f:
        json.dump(manifest, f, indent=2)

    end_time = time.perf_counter()
    logger.info(f"Baking complete! Total time: {end_time - start_time:.2f} seconds.")
    logger.info(
        f"Textures: {total_chunks} total -> {len(saved_hashes)} unique saved "
        f"({compression_stats['uniform']} uniform, {compression_stats['palettized']} palettized, "
        f"{compression_stats['full']} full)"
    )
    logger.info(f"Baked terrain and manifest.json saved to: {base_output_dir}")
    return 0


# --- Command-Line Interface ---
if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Offline baker for procedural terrain chunks.")
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to the JSON configuration file for the terrain to be baked."
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output directory. Defaults to baked_terrain/seed_<seed>."
    )
    args = parser.parse_args()

    sys.exit(bake_terrain(args.config, args.output))
